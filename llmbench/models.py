#!/usr/bin/env python3

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, List, Mapping, Optional


class BenchmarkMode(Enum):
    BENCHMARK = "benchmark"
    COMPARE = "compare"
    LOAD_TEST = "load_test"


@dataclass
class SLOConstraints:
    max_average_ms: Optional[float] = None
    max_p95_ms: Optional[float] = None
    max_p99_ms: Optional[float] = None
    min_success_rate: Optional[float] = None
    min_throughput: Optional[float] = None


@dataclass
class ProviderConfig:
    name: str
    type: str = "mock"
    model_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    api_key: Optional[str] = None
    max_output_tokens: Optional[int] = None
    min_response_time_ms: int = 100
    max_response_time_ms: int = 1000
    error_rate: float = 0.05
    seed: Optional[int] = None


@dataclass
class BenchmarkConfig:
    providers: List[ProviderConfig]
    mode: BenchmarkMode = BenchmarkMode.BENCHMARK
    prompts: List[str] = field(default_factory=list)
    prompts_path: Optional[Path] = None
    iterations: int = 1
    max_concurrency: int = 4
    concurrent_requests: int = 10
    load_test_prompt: Optional[str] = None
    timeout: int = 300
    output_dir: Path = Path("benchmark_results")
    output_path: Optional[Path] = None
    prometheus_textfile: Optional[Path] = None
    slo_file: Optional[Path] = None
    show_progress: bool = False
    debug: bool = False


@dataclass(frozen=True)
class RequestMetric:
    iteration_index: int
    prompt: str
    succeeded: bool
    response_time_ms: int
    error_message: Optional[str] = None
    response: Any = None
    start_timestamp: float = 0.0
    end_timestamp: float = 0.0


@dataclass(frozen=True)
class BenchmarkResult:
    provider_name: str
    total_requests: int
    successful_requests: int
    success_rate: float
    average_response_time_ms: float
    p95_response_time_ms: float
    p99_response_time_ms: float
    p50_response_time_ms: float = 0.0
    min_response_time_ms: float = 0.0
    max_response_time_ms: float = 0.0
    stddev_response_time_ms: float = 0.0
    duration_ms: int = 0

    @property
    def failed_requests(self) -> int:
        return self.total_requests - self.successful_requests

    def __str__(self):
        return (
            f"BenchmarkResult(provider='{self.provider_name}', "
            f"success={self.successful_requests}/{self.total_requests} ({self.success_rate * 100:.2f}%), "
            f"avg={self.average_response_time_ms:.2f}ms, p95={self.p95_response_time_ms:.2f}ms, "
            f"p99={self.p99_response_time_ms:.2f}ms)"
        )


@dataclass(frozen=True)
class ComparisonResult:
    """Benchmark results keyed by client name.

    The mapping is copied on construction and exposed read-only. When two
    clients tie on the ranking key, the one that comes first in the mapping's
    insertion order wins.
    """

    results: Mapping[str, BenchmarkResult]

    def __post_init__(self):
        object.__setattr__(self, "results", MappingProxyType(dict(self.results)))

    @property
    def best_performer(self) -> Optional[str]:
        if not self.results:
            return None
        # max() keeps the first of several equal keys
        return max(self.results, key=lambda name: self.results[name].success_rate)

    @property
    def fastest_provider(self) -> Optional[str]:
        if not self.results:
            return None
        return min(self.results, key=lambda name: self.results[name].average_response_time_ms)


@dataclass(frozen=True)
class LoadTestResult:
    provider_name: str
    concurrent_requests: int
    successful_requests: int
    total_time_ms: int
    success_rate: float
    throughput: float
    average_response_time_ms: float
    p95_response_time_ms: float = 0.0
    p99_response_time_ms: float = 0.0

    def __str__(self):
        return (
            f"LoadTestResult(provider='{self.provider_name}', concurrent={self.concurrent_requests}, "
            f"success={self.successful_requests} ({self.success_rate * 100:.2f}%), "
            f"throughput={self.throughput:.2f} req/s, avg={self.average_response_time_ms:.2f}ms, "
            f"total={self.total_time_ms}ms)"
        )


def count_tokens(text: str) -> int:
    if not text:
        return 0
    return len(text.strip().split())

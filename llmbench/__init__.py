"""
llmbench - Concurrent LLM Client Benchmarking Engine

Drives many requests against one or more LLM clients on a bounded worker pool
and reduces the timings into summaries:
- Per-client benchmarks (success rate, mean and nearest-rank percentile latency)
- Head-to-head comparison of several clients run concurrently
- Burst load tests with wall-clock throughput
- Prompt templates with {{parameter}} placeholders
- SLO validation, JSON/CSV reports and Prometheus export
"""

from .analyzer import MetricsAnalyzer
from .client import LLMClient, LLMResponse, MockLLMClient, OpenAIClient, Usage, create_client
from .exceptions import BenchmarkConfigError, LLMClientError, PoolShutdownError, PromptTemplateError
from .loaders import ConfigLoader, PromptLoader, SLOLoader
from .models import (
    BenchmarkConfig,
    BenchmarkMode,
    BenchmarkResult,
    ComparisonResult,
    LoadTestResult,
    ProviderConfig,
    RequestMetric,
    SLOConstraints,
    count_tokens,
)
from .pool import TaskPool
from .prober import measure_response
from .prompt import PromptTemplate, expand_prompt_template
from .prometheus_exporter import BenchmarkMetricsExporter
from .runner import LLMBenchmark, run_config_benchmark

__version__ = "0.1.0"
__all__ = [
    "MetricsAnalyzer",
    "LLMClient",
    "LLMResponse",
    "MockLLMClient",
    "OpenAIClient",
    "Usage",
    "create_client",
    "BenchmarkConfigError",
    "LLMClientError",
    "PoolShutdownError",
    "PromptTemplateError",
    "ConfigLoader",
    "PromptLoader",
    "SLOLoader",
    "BenchmarkConfig",
    "BenchmarkMode",
    "BenchmarkResult",
    "ComparisonResult",
    "LoadTestResult",
    "ProviderConfig",
    "RequestMetric",
    "SLOConstraints",
    "count_tokens",
    "TaskPool",
    "measure_response",
    "PromptTemplate",
    "expand_prompt_template",
    "BenchmarkMetricsExporter",
    "LLMBenchmark",
    "run_config_benchmark",
]

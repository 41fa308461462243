#!/usr/bin/env python3
"""
Test creation and validation of all dataclasses
"""

import dataclasses
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from llmbench import (
    SLOConstraints,
    BenchmarkConfig,
    BenchmarkMode,
    BenchmarkResult,
    ComparisonResult,
    LLMClientError,
    LLMResponse,
    LoadTestResult,
    ProviderConfig,
    RequestMetric,
    Usage,
)


def _result(name, success_rate, avg, total=10):
    return BenchmarkResult(
        provider_name=name,
        total_requests=total,
        successful_requests=int(total * success_rate),
        success_rate=success_rate,
        average_response_time_ms=avg,
        p95_response_time_ms=avg,
        p99_response_time_ms=avg
    )


def test_slo_constraints():
    """Test SLOConstraints dataclass"""
    print("Testing SLOConstraints...")

    slo1 = SLOConstraints()
    assert slo1.max_average_ms is None
    assert slo1.max_p95_ms is None
    assert slo1.max_p99_ms is None
    assert slo1.min_success_rate is None
    assert slo1.min_throughput is None

    slo2 = SLOConstraints(max_p95_ms=100.0, min_success_rate=0.99)
    assert slo2.max_p95_ms == 100.0
    assert slo2.min_success_rate == 0.99

    print("✓ SLOConstraints tests passed")


def test_benchmark_config():
    """Test BenchmarkConfig dataclass"""
    print("Testing BenchmarkConfig...")

    config = BenchmarkConfig(
        providers=[ProviderConfig(name="fast")],
        mode=BenchmarkMode.COMPARE,
        prompts=["Hello"]
    )

    assert config.providers[0].type == "mock"  # default value
    assert config.providers[0].error_rate == 0.05  # default value
    assert config.mode == BenchmarkMode.COMPARE
    assert config.iterations == 1  # default value
    assert config.max_concurrency == 4  # default value
    assert config.timeout == 300  # default value
    assert config.output_dir == Path("benchmark_results")

    print("✓ BenchmarkConfig tests passed")


def test_request_metric():
    """Test RequestMetric dataclass"""
    print("Testing RequestMetric...")

    metric = RequestMetric(
        iteration_index=2,
        prompt="Hello",
        succeeded=False,
        response_time_ms=120,
        error_message="[Mock][500] Simulated API error"
    )

    assert metric.iteration_index == 2
    assert metric.succeeded is False
    assert metric.response is None
    assert metric.error_message == "[Mock][500] Simulated API error"

    with pytest.raises(dataclasses.FrozenInstanceError):
        metric.succeeded = True

    print("✓ RequestMetric tests passed")


def test_benchmark_result():
    """Test BenchmarkResult dataclass"""
    result = BenchmarkResult(
        provider_name="fast",
        total_requests=10,
        successful_requests=7,
        success_rate=0.7,
        average_response_time_ms=120.5,
        p95_response_time_ms=200.0,
        p99_response_time_ms=210.0
    )

    assert result.failed_requests == 3
    assert result.p50_response_time_ms == 0.0  # default value
    assert "provider='fast'" in str(result)
    assert "7/10" in str(result)

    with pytest.raises(dataclasses.FrozenInstanceError):
        result.success_rate = 1.0


def test_comparison_result_ranking():
    """Test best performer and fastest provider selection"""
    print("Testing ComparisonResult...")

    comparison = ComparisonResult({
        "A": _result("A", 0.9, 100.0),
        "B": _result("B", 1.0, 200.0),
    })

    assert comparison.best_performer == "B"
    assert comparison.fastest_provider == "A"

    print("✓ ComparisonResult tests passed")


def test_comparison_result_ties_pick_first_inserted():
    """Ties resolve to the first entry in insertion order"""
    comparison = ComparisonResult({
        "second": _result("second", 1.0, 50.0),
        "first": _result("first", 1.0, 50.0),
    })
    assert comparison.best_performer == "second"
    assert comparison.fastest_provider == "second"


def test_comparison_result_all_failed_counts_as_fastest():
    """A client whose requests all failed reports 0.0 average latency"""
    comparison = ComparisonResult({
        "ok": _result("ok", 1.0, 120.0),
        "broken": _result("broken", 0.0, 0.0),
    })
    assert comparison.best_performer == "ok"
    assert comparison.fastest_provider == "broken"


def test_comparison_result_empty():
    comparison = ComparisonResult({})
    assert comparison.best_performer is None
    assert comparison.fastest_provider is None


def test_comparison_result_is_read_only_copy():
    """The results mapping is copied and cannot be mutated"""
    source = {"A": _result("A", 1.0, 10.0)}
    comparison = ComparisonResult(source)

    source["B"] = _result("B", 1.0, 5.0)
    assert list(comparison.results) == ["A"]
    assert comparison.fastest_provider == "A"

    with pytest.raises(TypeError):
        comparison.results["C"] = _result("C", 1.0, 1.0)


def test_load_test_result():
    """Test LoadTestResult dataclass"""
    result = LoadTestResult(
        provider_name="fast",
        concurrent_requests=100,
        successful_requests=100,
        total_time_ms=2000,
        success_rate=1.0,
        throughput=50.0,
        average_response_time_ms=80.0
    )

    assert result.p95_response_time_ms == 0.0  # default value
    assert "throughput=50.00 req/s" in str(result)


def test_llm_response_and_usage():
    usage = Usage(prompt_tokens=3, completion_tokens=5, total_tokens=8)
    response = LLMResponse(content="one two three", model="m", usage=usage)

    assert response.word_count == 3
    assert response.usage.total_tokens == 8
    assert response.finish_reason is None
    assert response.request_id == ""


def test_llm_client_error_formatting():
    error = LLMClientError("Simulated API error", "Mock", 500)
    assert str(error) == "[Mock][500] Simulated API error"
    assert error.provider_name == "Mock"
    assert error.error_code == 500

    plain = LLMClientError("boom")
    assert str(plain) == "boom"
    assert plain.error_code == -1

    provider_only = LLMClientError("Request failed", "OpenAI")
    assert str(provider_only) == "[OpenAI] Request failed"

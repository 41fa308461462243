from pathlib import Path

from prometheus_client import CollectorRegistry, Gauge, generate_latest, write_to_textfile

from .models import BenchmarkResult, LoadTestResult


class BenchmarkMetricsExporter:
    """Publishes benchmark summaries as Prometheus gauges labelled by provider."""

    def __init__(self, namespace: str = "llmbench"):
        self.registry = CollectorRegistry()
        self.requests_issued = Gauge(
            "requests_issued", "Requests issued in the benchmark run",
            ["provider", "kind"], namespace=namespace, registry=self.registry
        )
        self.requests_successful = Gauge(
            "requests_successful", "Requests that completed successfully",
            ["provider", "kind"], namespace=namespace, registry=self.registry
        )
        self.success_rate = Gauge(
            "success_rate", "Fraction of successful requests",
            ["provider", "kind"], namespace=namespace, registry=self.registry
        )
        self.response_time_ms = Gauge(
            "response_time_ms", "Response time of successful requests",
            ["provider", "kind", "statistic"], namespace=namespace, registry=self.registry
        )
        self.throughput = Gauge(
            "throughput_requests_per_second", "Successful requests per second during a load test",
            ["provider"], namespace=namespace, registry=self.registry
        )

    def record_benchmark(self, result: BenchmarkResult):
        kind = "benchmark"
        self.requests_issued.labels(result.provider_name, kind).set(result.total_requests)
        self.requests_successful.labels(result.provider_name, kind).set(result.successful_requests)
        self.success_rate.labels(result.provider_name, kind).set(result.success_rate)
        for statistic, value in (
            ("avg", result.average_response_time_ms),
            ("p50", result.p50_response_time_ms),
            ("p95", result.p95_response_time_ms),
            ("p99", result.p99_response_time_ms),
        ):
            self.response_time_ms.labels(result.provider_name, kind, statistic).set(value)

    def record_load_test(self, result: LoadTestResult):
        kind = "load_test"
        self.requests_issued.labels(result.provider_name, kind).set(result.concurrent_requests)
        self.requests_successful.labels(result.provider_name, kind).set(result.successful_requests)
        self.success_rate.labels(result.provider_name, kind).set(result.success_rate)
        for statistic, value in (
            ("avg", result.average_response_time_ms),
            ("p95", result.p95_response_time_ms),
            ("p99", result.p99_response_time_ms),
        ):
            self.response_time_ms.labels(result.provider_name, kind, statistic).set(value)
        self.throughput.labels(result.provider_name).set(result.throughput)

    def render(self) -> str:
        return generate_latest(self.registry).decode("utf-8")

    def write_textfile(self, path: Path):
        path.parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(str(path), self.registry)
        print(f"Prometheus metrics saved to: {path}")

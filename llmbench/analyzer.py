import csv
import json
import math
from datetime import datetime
from pathlib import Path
from statistics import mean, stdev
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .models import (
    BenchmarkConfig,
    BenchmarkResult,
    ComparisonResult,
    LoadTestResult,
    RequestMetric,
    SLOConstraints,
)


class MetricsAnalyzer:
    @staticmethod
    def calculate_percentile(values: Sequence[float], percentile: float) -> float:
        """Nearest-rank percentile, ``percentile`` on the 0-100 scale."""
        if not values:
            return 0.0
        sorted_values = sorted(values)
        index = math.ceil(len(sorted_values) * percentile / 100) - 1
        return float(sorted_values[max(0, min(index, len(sorted_values) - 1))])

    @staticmethod
    def analyze_benchmark(provider_name: str, metrics: List[RequestMetric], duration_ms: int = 0) -> BenchmarkResult:
        successful = [m for m in metrics if m.succeeded]
        total = len(metrics)
        success_rate = len(successful) / total if total > 0 else 0.0

        if not successful:
            return BenchmarkResult(
                provider_name=provider_name,
                total_requests=total,
                successful_requests=0,
                success_rate=success_rate,
                average_response_time_ms=0.0,
                p95_response_time_ms=0.0,
                p99_response_time_ms=0.0,
                duration_ms=duration_ms
            )

        latency_values = sorted(m.response_time_ms for m in successful)

        return BenchmarkResult(
            provider_name=provider_name,
            total_requests=total,
            successful_requests=len(successful),
            success_rate=success_rate,
            average_response_time_ms=float(mean(latency_values)),
            p95_response_time_ms=MetricsAnalyzer.calculate_percentile(latency_values, 95),
            p99_response_time_ms=MetricsAnalyzer.calculate_percentile(latency_values, 99),
            p50_response_time_ms=MetricsAnalyzer.calculate_percentile(latency_values, 50),
            min_response_time_ms=float(latency_values[0]),
            max_response_time_ms=float(latency_values[-1]),
            stddev_response_time_ms=float(stdev(latency_values)) if len(latency_values) > 1 else 0.0,
            duration_ms=duration_ms
        )

    @staticmethod
    def analyze_load_test(provider_name: str, metrics: List[RequestMetric], total_time_ms: int,
                          concurrent_requests: int) -> LoadTestResult:
        latency_values = sorted(m.response_time_ms for m in metrics if m.succeeded)
        successful = len(latency_values)
        success_rate = successful / len(metrics) if metrics else 0.0
        throughput = successful / total_time_ms * 1000 if total_time_ms > 0 else 0.0

        return LoadTestResult(
            provider_name=provider_name,
            concurrent_requests=concurrent_requests,
            successful_requests=successful,
            total_time_ms=total_time_ms,
            success_rate=success_rate,
            throughput=throughput,
            average_response_time_ms=float(mean(latency_values)) if latency_values else 0.0,
            p95_response_time_ms=MetricsAnalyzer.calculate_percentile(latency_values, 95),
            p99_response_time_ms=MetricsAnalyzer.calculate_percentile(latency_values, 99)
        )

    @staticmethod
    def _truncate_text(text: str, max_width: int) -> str:
        if len(text) <= max_width:
            return text
        return text[:max_width - 3] + "..."

    @staticmethod
    def _print_table(title: str, headers: List[str], rows: List[List[Any]], col_widths: List[int]):
        total_width = sum(col_widths) + len(col_widths) * 3 - 1
        print(f"\n{title.center(total_width)}")

        print("┏" + "┳".join("━" * (w + 2) for w in col_widths) + "┓")
        print("┃ " + " ┃ ".join(
            MetricsAnalyzer._truncate_text(headers[i], col_widths[i]).rjust(col_widths[i])
            for i in range(len(headers))
        ) + " ┃")
        print("┡" + "╇".join("━" * (w + 2) for w in col_widths) + "┩")

        for row in rows:
            cells = [MetricsAnalyzer._truncate_text(str(cell), col_widths[i]) for i, cell in enumerate(row)]
            print("│ " + " │ ".join(cells[i].rjust(col_widths[i]) for i in range(len(cells))) + " │")

        print("└" + "┴".join("─" * (w + 2) for w in col_widths) + "┘")

    @staticmethod
    def print_benchmark(result: BenchmarkResult):
        rows = [[
            "Response time (ms)",
            f"{result.average_response_time_ms:.2f}",
            f"{result.p99_response_time_ms:.2f}",
            f"{result.p95_response_time_ms:.2f}",
            f"{result.p50_response_time_ms:.2f}",
            f"{result.min_response_time_ms:.2f}",
            f"{result.max_response_time_ms:.2f}",
            f"{result.stddev_response_time_ms:.2f}"
        ]]
        headers = ["Statistic", "avg", "p99", "p95", "p50", "min", "max", "stddev"]
        MetricsAnalyzer._print_table(
            f"LLM Benchmark | {result.provider_name}",
            headers,
            rows,
            [24, 9, 9, 9, 9, 9, 9, 9]
        )
        print(
            f"\nProvider: {result.provider_name} | Total requests: {result.total_requests} | "
            f"Successful: {result.successful_requests} | Failed: {result.failed_requests} | "
            f"Success rate: {result.success_rate * 100:.2f}% | Duration: {result.duration_ms / 1000:.2f}s"
        )

    @staticmethod
    def print_comparison(comparison: ComparisonResult):
        rows = []
        for name, result in comparison.results.items():
            rows.append([
                name,
                f"{result.successful_requests}/{result.total_requests}",
                f"{result.success_rate * 100:.2f}",
                f"{result.average_response_time_ms:.2f}",
                f"{result.p95_response_time_ms:.2f}",
                f"{result.p99_response_time_ms:.2f}"
            ])
        headers = ["Provider", "success", "rate (%)", "avg (ms)", "p95 (ms)", "p99 (ms)"]
        MetricsAnalyzer._print_table("LLM Benchmark | Provider Comparison", headers, rows, [24, 11, 9, 10, 10, 10])
        print(f"\nBest performer: {comparison.best_performer} | Fastest provider: {comparison.fastest_provider}")

    @staticmethod
    def print_load_test(result: LoadTestResult):
        rows = [
            ["Concurrent requests", result.concurrent_requests],
            ["Successful requests", result.successful_requests],
            ["Success rate (%)", f"{result.success_rate * 100:.2f}"],
            ["Total time (ms)", result.total_time_ms],
            ["Throughput (req/s)", f"{result.throughput:.2f}"],
            ["Avg response time (ms)", f"{result.average_response_time_ms:.2f}"],
            ["P95 response time (ms)", f"{result.p95_response_time_ms:.2f}"],
            ["P99 response time (ms)", f"{result.p99_response_time_ms:.2f}"],
        ]
        MetricsAnalyzer._print_table(
            f"LLM Load Test | {result.provider_name}",
            ["Statistic", "value"],
            rows,
            [24, 12]
        )

    @staticmethod
    def serialize_benchmark(result: BenchmarkResult) -> Dict[str, Any]:
        return {
            "provider_name": result.provider_name,
            "total_requests": result.total_requests,
            "successful_requests": result.successful_requests,
            "failed_requests": result.failed_requests,
            "success_rate": result.success_rate,
            "duration_ms": result.duration_ms,
            "response_time": {
                "avg_ms": result.average_response_time_ms,
                "p50_ms": result.p50_response_time_ms,
                "p95_ms": result.p95_response_time_ms,
                "p99_ms": result.p99_response_time_ms,
                "min_ms": result.min_response_time_ms,
                "max_ms": result.max_response_time_ms,
                "stddev_ms": result.stddev_response_time_ms
            }
        }

    @staticmethod
    def serialize_load_test(result: LoadTestResult) -> Dict[str, Any]:
        return {
            "provider_name": result.provider_name,
            "concurrent_requests": result.concurrent_requests,
            "successful_requests": result.successful_requests,
            "success_rate": result.success_rate,
            "total_time_ms": result.total_time_ms,
            "throughput_rps": result.throughput,
            "response_time": {
                "avg_ms": result.average_response_time_ms,
                "p95_ms": result.p95_response_time_ms,
                "p99_ms": result.p99_response_time_ms
            }
        }

    @staticmethod
    def serialize_results(
        benchmarks: Optional[Mapping[str, BenchmarkResult]] = None,
        load_tests: Optional[Mapping[str, LoadTestResult]] = None,
        comparison: Optional[ComparisonResult] = None
    ) -> Dict[str, Any]:
        data: Dict[str, Any] = {"generated_at": datetime.now().isoformat()}

        if benchmarks:
            data["benchmarks"] = {
                name: MetricsAnalyzer.serialize_benchmark(result) for name, result in benchmarks.items()
            }
        if comparison is not None:
            data["comparison"] = {
                "best_performer": comparison.best_performer,
                "fastest_provider": comparison.fastest_provider,
                "results": {
                    name: MetricsAnalyzer.serialize_benchmark(result) for name, result in comparison.results.items()
                }
            }
        if load_tests:
            data["load_tests"] = {
                name: MetricsAnalyzer.serialize_load_test(result) for name, result in load_tests.items()
            }

        return data

    @staticmethod
    def save_results(data: Dict[str, Any], output_path: Path):
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        print(f"\nJSON results saved to: {output_path}")

    @staticmethod
    def save_csv_results(
        config: BenchmarkConfig,
        benchmarks: Mapping[str, BenchmarkResult],
        load_tests: Mapping[str, LoadTestResult],
        slo: Optional[SLOConstraints],
        output_dir: Path,
        prompt_count: Optional[int] = None
    ) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        csv_path = output_dir / f"benchmark_{timestamp}.csv"
        params_path = output_dir / f"benchmark_{timestamp}_params.txt"

        with open(params_path, 'w', encoding='utf-8') as f:
            f.write("=== Benchmark Parameters ===\n")
            f.write(f"Mode: {config.mode.value}\n")
            f.write(f"Providers: {', '.join(p.name for p in config.providers)}\n")
            f.write(f"Prompts: {prompt_count if prompt_count is not None else len(config.prompts)}\n")
            f.write(f"Iterations: {config.iterations}\n")
            f.write(f"Max concurrency: {config.max_concurrency}\n")
            f.write(f"Concurrent requests (load test): {config.concurrent_requests}\n")
            f.write(f"Timeout: {config.timeout}s\n")

            if slo:
                f.write("\n=== SLO Constraints ===\n")
                if slo.max_average_ms is not None:
                    f.write(f"Average max: {slo.max_average_ms} ms\n")
                if slo.max_p95_ms is not None:
                    f.write(f"P95 max: {slo.max_p95_ms} ms\n")
                if slo.max_p99_ms is not None:
                    f.write(f"P99 max: {slo.max_p99_ms} ms\n")
                if slo.min_success_rate is not None:
                    f.write(f"Success rate min: {slo.min_success_rate}\n")
                if slo.min_throughput is not None:
                    f.write(f"Throughput min: {slo.min_throughput} req/s\n")

            f.write("\n=== Execution Time ===\n")
            f.write(f"Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")

        with open(csv_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)

            if benchmarks:
                writer.writerow([
                    'Provider', 'Total requests', 'Successful requests', 'Failed requests', 'Success rate',
                    'Avg (ms)', 'P50 (ms)', 'P95 (ms)', 'P99 (ms)', 'Min (ms)', 'Max (ms)', 'Stddev (ms)',
                    'Duration (ms)'
                ])
                for name, r in benchmarks.items():
                    writer.writerow([
                        name, r.total_requests, r.successful_requests, r.failed_requests, f'{r.success_rate:.4f}',
                        f'{r.average_response_time_ms:.2f}', f'{r.p50_response_time_ms:.2f}',
                        f'{r.p95_response_time_ms:.2f}', f'{r.p99_response_time_ms:.2f}',
                        f'{r.min_response_time_ms:.2f}', f'{r.max_response_time_ms:.2f}',
                        f'{r.stddev_response_time_ms:.2f}', r.duration_ms
                    ])
                writer.writerow([])

            if load_tests:
                writer.writerow([
                    'Provider', 'Concurrent requests', 'Successful requests', 'Success rate',
                    'Total time (ms)', 'Throughput (req/s)', 'Avg (ms)', 'P95 (ms)', 'P99 (ms)'
                ])
                for name, r in load_tests.items():
                    writer.writerow([
                        name, r.concurrent_requests, r.successful_requests, f'{r.success_rate:.4f}',
                        r.total_time_ms, f'{r.throughput:.2f}', f'{r.average_response_time_ms:.2f}',
                        f'{r.p95_response_time_ms:.2f}', f'{r.p99_response_time_ms:.2f}'
                    ])

        print(f"CSV results saved to: {csv_path}")
        print(f"Parameters saved to: {params_path}")
        return csv_path

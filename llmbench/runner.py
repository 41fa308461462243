import time
from typing import Any, Dict, List, Mapping, Optional, Sequence

from tqdm import tqdm

from .analyzer import MetricsAnalyzer
from .client import LLMClient, create_client
from .exceptions import BenchmarkConfigError, PoolShutdownError
from .loaders import PromptLoader, SLOLoader
from .models import (
    BenchmarkConfig,
    BenchmarkMode,
    BenchmarkResult,
    ComparisonResult,
    LoadTestResult,
    RequestMetric,
)
from .pool import TaskPool
from .prober import measure_response
from .prometheus_exporter import BenchmarkMetricsExporter


def _elapsed_ms(start_ns: int) -> int:
    return (time.perf_counter_ns() - start_ns) // 1_000_000


def _provider_name(client) -> str:
    return getattr(client, "provider_name", None) or type(client).__name__


class LLMBenchmark:
    """Concurrent benchmarking engine for LLM clients.

    The engine owns one bounded worker pool for its lifetime. Every public
    call blocks until all of its probes have completed. Call ``shutdown``
    (or use the engine as a context manager) to release the workers.
    """

    def __init__(self, max_concurrency: int, show_progress: bool = False, debug: bool = False):
        self.pool = TaskPool(max_concurrency)
        self.max_concurrency = max_concurrency
        self.show_progress = show_progress
        self.debug = debug

    @staticmethod
    def _validate_prompts(prompts: Sequence[str], iterations: int):
        if isinstance(prompts, str) or not prompts:
            raise BenchmarkConfigError("prompts must be a non-empty list of strings")
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations < 1:
            raise BenchmarkConfigError(f"iterations must be a positive integer, got {iterations!r}")

    def _check_open(self):
        if self.pool.is_shutdown:
            raise PoolShutdownError("LLMBenchmark has been shut down")

    def _progress(self, total: int, desc: str) -> Optional[tqdm]:
        if not self.show_progress:
            return None
        return tqdm(
            total=total,
            desc=desc,
            ncols=120,
            bar_format='{desc}: {percentage:3.0f}%|{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}]'
        )

    def _submit_probes(self, client, prompts: Sequence[str], iterations: int):
        futures = []
        for prompt in prompts:
            for i in range(iterations):
                futures.append(self.pool.submit(measure_response, client, prompt, i, self.debug))
        return futures

    def _collect(self, futures, desc: str) -> List[RequestMetric]:
        pbar = self._progress(len(futures), desc)
        try:
            return TaskPool.wait_all(futures, pbar)
        finally:
            if pbar is not None:
                pbar.close()

    def run_benchmark(self, client: LLMClient, prompts: Sequence[str], iterations: int,
                      provider_name: Optional[str] = None) -> BenchmarkResult:
        """Run ``iterations`` probes per prompt against one client and summarize them."""
        self._validate_prompts(prompts, iterations)
        self._check_open()

        name = provider_name or _provider_name(client)
        start_ns = time.perf_counter_ns()
        futures = self._submit_probes(client, prompts, iterations)
        metrics = self._collect(futures, f"Benchmark {name}")
        return MetricsAnalyzer.analyze_benchmark(name, metrics, _elapsed_ms(start_ns))

    def compare_benchmark(self, clients: Mapping[str, LLMClient], prompts: Sequence[str],
                          iterations: int) -> ComparisonResult:
        """Benchmark several named clients concurrently on the shared pool.

        All probes are submitted from the calling thread before any is
        awaited, so pool workers never wait on other pool tasks.
        """
        if not clients:
            raise BenchmarkConfigError("clients must contain at least one named client")
        self._validate_prompts(prompts, iterations)
        self._check_open()

        starts: Dict[str, float] = {}
        pending: Dict[str, list] = {}
        for name, client in clients.items():
            starts[name] = time.time()
            pending[name] = self._submit_probes(client, prompts, iterations)

        all_futures = [f for futures in pending.values() for f in futures]
        pbar = self._progress(len(all_futures), f"Compare {len(clients)} providers")
        try:
            TaskPool.wait_all(all_futures, pbar)
        finally:
            if pbar is not None:
                pbar.close()

        results: Dict[str, BenchmarkResult] = {}
        for name, futures in pending.items():
            metrics = [f.result() for f in futures]
            last_end = max(m.end_timestamp for m in metrics)
            duration_ms = max(0, int((last_end - starts[name]) * 1000))
            results[name] = MetricsAnalyzer.analyze_benchmark(name, metrics, duration_ms)

        return ComparisonResult(results)

    def run_load_test(self, client: LLMClient, prompt: str, concurrent_requests: int,
                      provider_name: Optional[str] = None) -> LoadTestResult:
        """Fire ``concurrent_requests`` probes at once and measure the burst's wall-clock span."""
        if isinstance(concurrent_requests, bool) or not isinstance(concurrent_requests, int) or concurrent_requests < 1:
            raise BenchmarkConfigError(f"concurrent_requests must be a positive integer, got {concurrent_requests!r}")
        if not isinstance(prompt, str):
            raise BenchmarkConfigError("prompt must be a string")
        self._check_open()

        name = provider_name or _provider_name(client)
        start_ns = time.perf_counter_ns()
        futures = [
            self.pool.submit(measure_response, client, prompt, i, self.debug)
            for i in range(concurrent_requests)
        ]
        metrics = self._collect(futures, f"Load test {name}")
        total_time_ms = _elapsed_ms(start_ns)

        return MetricsAnalyzer.analyze_load_test(name, metrics, total_time_ms, concurrent_requests)

    def shutdown(self):
        self.pool.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()


def _resolve_prompts(config: BenchmarkConfig) -> List[str]:
    if config.prompts:
        return list(config.prompts)
    if config.prompts_path is not None:
        return PromptLoader.load_prompts(config.prompts_path)
    if config.mode == BenchmarkMode.LOAD_TEST and config.load_test_prompt:
        return [config.load_test_prompt]
    raise BenchmarkConfigError("No prompts configured: set prompts or prompts_file")


def _build_clients(config: BenchmarkConfig) -> Dict[str, LLMClient]:
    clients: Dict[str, LLMClient] = {}
    for provider in config.providers:
        client = create_client(provider, config.timeout)
        if not client.is_ready():
            raise BenchmarkConfigError(f"Provider '{provider.name}' is not ready: {client.describe()}")
        clients[provider.name] = client
    return clients


def run_config_benchmark(config: BenchmarkConfig) -> Dict[str, Any]:
    """Run the benchmark described by a config, print and save its results."""
    if not config.providers:
        raise BenchmarkConfigError("At least one provider must be configured")

    prompts = _resolve_prompts(config)
    slo = SLOLoader.load_slo(config.slo_file) if config.slo_file else None
    if config.slo_file and slo is None:
        print(f"Warning: Failed to load SLO configuration file or file format error: {config.slo_file}")

    clients = _build_clients(config)

    print("=" * 60)
    print(f"LLM Benchmark - {config.mode.value}")
    print("=" * 60)
    for name, client in clients.items():
        print(f"Provider {name}: {client.describe()}")
    print(f"Prompts: {len(prompts)}")
    print(f"Max concurrency: {config.max_concurrency}")
    if config.mode == BenchmarkMode.LOAD_TEST:
        print(f"Concurrent requests: {config.concurrent_requests}")
    else:
        print(f"Iterations: {config.iterations}")
    print("=" * 60)

    benchmarks: Dict[str, BenchmarkResult] = {}
    load_tests: Dict[str, LoadTestResult] = {}
    comparison: Optional[ComparisonResult] = None

    with LLMBenchmark(config.max_concurrency, show_progress=config.show_progress, debug=config.debug) as benchmark:
        if config.mode == BenchmarkMode.BENCHMARK:
            for name, client in clients.items():
                result = benchmark.run_benchmark(client, prompts, config.iterations, provider_name=name)
                benchmarks[name] = result
                MetricsAnalyzer.print_benchmark(result)
        elif config.mode == BenchmarkMode.COMPARE:
            comparison = benchmark.compare_benchmark(clients, prompts, config.iterations)
            benchmarks = dict(comparison.results)
            for result in benchmarks.values():
                MetricsAnalyzer.print_benchmark(result)
            MetricsAnalyzer.print_comparison(comparison)
        else:
            prompt = config.load_test_prompt or prompts[0]
            for name, client in clients.items():
                result = benchmark.run_load_test(client, prompt, config.concurrent_requests, provider_name=name)
                load_tests[name] = result
                MetricsAnalyzer.print_load_test(result)

    slo_violations: Dict[str, List[str]] = {}
    if slo is not None:
        for name, result in benchmarks.items():
            slo_violations[name] = SLOLoader.check_benchmark(result, slo)
        for name, result in load_tests.items():
            slo_violations[name] = SLOLoader.check_load_test(result, slo)
        for name, violations in slo_violations.items():
            if violations:
                print(f"✗ {name} violates SLO: {'; '.join(violations)}")
            else:
                print(f"✓ {name} meets SLO")

    data = MetricsAnalyzer.serialize_results(benchmarks, load_tests, comparison)
    if slo is not None:
        data["slo_violations"] = slo_violations

    if config.output_path is not None:
        MetricsAnalyzer.save_results(data, config.output_path)
    MetricsAnalyzer.save_csv_results(config, benchmarks, load_tests, slo, config.output_dir, len(prompts))

    if config.prometheus_textfile is not None:
        exporter = BenchmarkMetricsExporter()
        for result in benchmarks.values():
            exporter.record_benchmark(result)
        for result in load_tests.values():
            exporter.record_load_test(result)
        exporter.write_textfile(config.prometheus_textfile)

    return data

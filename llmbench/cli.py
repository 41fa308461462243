import argparse
from pathlib import Path
from typing import List, Optional

from .exceptions import BenchmarkConfigError
from .loaders import ConfigLoader
from .mock_server import MockServerThread
from .models import BenchmarkConfig, BenchmarkMode, ProviderConfig
from .runner import run_config_benchmark


def add_cli_arguments(parser: argparse.ArgumentParser):
    parser.add_argument(
        "--mock-server",
        action="store_true",
        help="Start built-in Mock LLM server and benchmark it through the OpenAI client"
    )
    parser.add_argument(
        "--mock-host",
        type=str,
        default="127.0.0.1",
        help="Mock server listen address (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--mock-port",
        type=int,
        default=8001,
        help="Mock server port (default: 8001)"
    )
    parser.add_argument(
        "--mock-latency-ms",
        type=int,
        nargs=2,
        default=[50, 200],
        metavar=("MIN", "MAX"),
        help="Mock server simulated latency range in ms (default: 50 200)"
    )
    parser.add_argument(
        "--mock-error-rate",
        type=float,
        default=0.0,
        help="Fraction of mock server requests answered with HTTP 500 (default: 0.0)"
    )


def parse_provider(provider_arg: str) -> ProviderConfig:
    if "=" in provider_arg:
        name, provider_type = provider_arg.split("=", 1)
    else:
        name, provider_type = provider_arg, provider_arg
    name = name.strip()
    provider_type = provider_type.strip()
    if not name or provider_type not in ("mock", "openai"):
        raise BenchmarkConfigError(f"Invalid provider '{provider_arg}': expected NAME=mock or NAME=openai")
    return ProviderConfig(name=name, type=provider_type)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="LLM benchmark tool - Measure success rate, latency percentiles and throughput of LLM clients"
    )

    add_cli_arguments(parser)

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Benchmark configuration file path (YAML format). Command line arguments override its values"
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in BenchmarkMode],
        default=None,
        help="Run mode: benchmark (each provider separately), compare (all providers concurrently) or load_test"
    )
    parser.add_argument(
        "--prompts",
        type=Path,
        default=None,
        help="Prompt file path (.txt, .json or .jsonl)"
    )
    parser.add_argument(
        "--prompt",
        type=str,
        action="append",
        default=None,
        help="Prompt text, can be repeated. Also used as the load test prompt"
    )
    parser.add_argument(
        "--provider",
        type=str,
        action="append",
        default=None,
        help="Provider as NAME=TYPE where TYPE is mock or openai, can be repeated (e.g.: --provider fast=mock)"
    )
    parser.add_argument(
        "--endpoint",
        type=str,
        default=None,
        help="OpenAI-format API endpoint URL for openai providers"
    )
    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model name for all command line providers"
    )
    parser.add_argument(
        "--api-key",
        type=str,
        default=None,
        help="API key (if required)"
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Iterations per prompt (default: 1)"
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Maximum number of requests in flight at once (default: 4)"
    )
    parser.add_argument(
        "--concurrent-requests",
        type=int,
        default=None,
        help="Number of requests fired in a load test (default: 10)"
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=None,
        help="Request timeout in seconds for openai providers (default: 300)"
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="JSON results output file path"
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="CSV results output directory (default: benchmark_results)"
    )
    parser.add_argument(
        "--prometheus-textfile",
        type=Path,
        default=None,
        help="Write results in Prometheus text format to this file"
    )
    parser.add_argument(
        "--slo-file",
        type=Path,
        default=None,
        help="SLO configuration file path (YAML format)"
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while requests run"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Print every failed request"
    )
    return parser


def build_config(args: argparse.Namespace) -> BenchmarkConfig:
    if args.config:
        config = ConfigLoader.load_config(args.config)
    else:
        config = BenchmarkConfig(providers=[])

    overrides: List[str] = []

    if args.provider:
        config.providers = [parse_provider(p) for p in args.provider]
        overrides.append(f"providers = {', '.join(p.name for p in config.providers)}")
    if not config.providers:
        default_type = "openai" if (args.endpoint or args.mock_server) else "mock"
        config.providers = [ProviderConfig(name=default_type, type=default_type)]

    for provider in config.providers:
        if args.model is not None:
            provider.model_name = args.model
        if provider.type == "openai":
            if args.endpoint is not None:
                provider.endpoint_url = args.endpoint
            if args.api_key is not None:
                provider.api_key = args.api_key
            if not provider.endpoint_url:
                raise BenchmarkConfigError(
                    f"Provider '{provider.name}' needs --endpoint (or --mock-server)"
                )

    if args.mode is not None:
        config.mode = BenchmarkMode(args.mode)
        overrides.append(f"mode = {args.mode}")
    if args.prompts is not None:
        config.prompts_path = args.prompts
        config.prompts = []
        overrides.append(f"prompts_file = {args.prompts}")
    if args.prompt:
        config.prompts = list(args.prompt)
        if config.load_test_prompt is None:
            config.load_test_prompt = args.prompt[0]
        overrides.append(f"prompts = {len(args.prompt)} from command line")
    if args.iterations is not None:
        config.iterations = args.iterations
        overrides.append(f"iterations = {args.iterations}")
    if args.max_concurrency is not None:
        config.max_concurrency = args.max_concurrency
        overrides.append(f"max_concurrency = {args.max_concurrency}")
    if args.concurrent_requests is not None:
        config.concurrent_requests = args.concurrent_requests
        overrides.append(f"concurrent_requests = {args.concurrent_requests}")
    if args.timeout is not None:
        config.timeout = args.timeout
        overrides.append(f"timeout = {args.timeout}")
    if args.output is not None:
        config.output_path = args.output
        overrides.append(f"output = {args.output}")
    if args.output_dir is not None:
        config.output_dir = args.output_dir
        overrides.append(f"output_dir = {args.output_dir}")
    if args.prometheus_textfile is not None:
        config.prometheus_textfile = args.prometheus_textfile
        overrides.append(f"prometheus_textfile = {args.prometheus_textfile}")
    if args.slo_file is not None:
        config.slo_file = args.slo_file
        overrides.append(f"slo_file = {args.slo_file}")
    if args.progress:
        config.show_progress = True
    if args.debug:
        config.debug = True

    if args.config and overrides:
        print("CLI parameter overrides:")
        for override in overrides:
            print(f"  - {override}")
        print()

    return config


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    mock_server = None
    if args.mock_server:
        mock_server = MockServerThread(
            args.mock_host,
            args.mock_port,
            min_latency_ms=args.mock_latency_ms[0],
            max_latency_ms=args.mock_latency_ms[1],
            error_rate=args.mock_error_rate
        )
        if args.endpoint is None:
            args.endpoint = mock_server.endpoint_url

    try:
        config = build_config(args)
    except BenchmarkConfigError as e:
        parser.error(str(e))

    if mock_server is not None:
        mock_server.start()
        print(f"Mock server started: http://{args.mock_host}:{args.mock_port}")

    try:
        run_config_benchmark(config)
    except BenchmarkConfigError as e:
        parser.error(str(e))
    finally:
        if mock_server is not None:
            mock_server.stop()

    print(f"\n{'=' * 60}")
    print("Benchmark completed!")
    print(f"{'=' * 60}")


if __name__ == "__main__":
    main()

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .exceptions import BenchmarkConfigError
from .models import (
    BenchmarkConfig,
    BenchmarkMode,
    BenchmarkResult,
    LoadTestResult,
    ProviderConfig,
    SLOConstraints,
)
from .prompt import expand_prompt_template


class PromptLoader:
    @staticmethod
    def _entry_to_prompt(entry: Any) -> str:
        if isinstance(entry, str):
            return entry
        if isinstance(entry, dict):
            for key in ('prompt', 'text', 'content'):
                if isinstance(entry.get(key), str):
                    return entry[key]
        raise BenchmarkConfigError(f"Unsupported prompt entry: {entry!r}")

    @staticmethod
    def load_prompts(path: Path) -> List[str]:
        if not path.exists():
            raise BenchmarkConfigError(f"Prompt file does not exist: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix == '.txt':
                entries: List[Any] = [line.rstrip('\n') for line in f if line.strip()]
            elif path.suffix == '.json':
                data = json.load(f)
                if isinstance(data, list):
                    entries = data
                elif isinstance(data, dict) and 'data' in data:
                    entries = data['data']
                elif isinstance(data, dict) and 'template' in data:
                    entries = expand_prompt_template(data)
                else:
                    raise BenchmarkConfigError(
                        "Unsupported JSON format: expected a list, {'data': [...]} or {'template': ...}"
                    )
            elif path.suffix == '.jsonl':
                entries = [json.loads(line) for line in f if line.strip()]
            else:
                raise BenchmarkConfigError(f"Unsupported file format: {path.suffix}")

        prompts = [PromptLoader._entry_to_prompt(entry) for entry in entries]
        if not prompts:
            raise BenchmarkConfigError(f"No prompts found in {path}")
        return prompts


class SLOLoader:
    @staticmethod
    def load_slo(slo_file: Optional[Path]) -> Optional[SLOConstraints]:
        if slo_file is None or not slo_file.exists():
            return None

        with open(slo_file, 'r', encoding='utf-8') as f:
            slo_data = yaml.safe_load(f)

        if not slo_data or 'constraints' not in slo_data:
            return None

        constraints_data = slo_data['constraints']

        return SLOConstraints(
            max_average_ms=constraints_data.get('average_ms', {}).get('max'),
            max_p95_ms=constraints_data.get('p95_ms', {}).get('max'),
            max_p99_ms=constraints_data.get('p99_ms', {}).get('max'),
            min_success_rate=constraints_data.get('success_rate', {}).get('min'),
            min_throughput=constraints_data.get('throughput', {}).get('min')
        )

    @staticmethod
    def check_benchmark(result: BenchmarkResult, slo: Optional[SLOConstraints]) -> List[str]:
        if slo is None:
            return []

        violations = []
        if slo.min_success_rate is not None and result.success_rate < slo.min_success_rate:
            violations.append(f"success rate {result.success_rate:.4f} < {slo.min_success_rate}")
        if slo.max_average_ms is not None and result.average_response_time_ms > slo.max_average_ms:
            violations.append(f"average {result.average_response_time_ms:.2f} ms > {slo.max_average_ms} ms")
        if slo.max_p95_ms is not None and result.p95_response_time_ms > slo.max_p95_ms:
            violations.append(f"p95 {result.p95_response_time_ms:.2f} ms > {slo.max_p95_ms} ms")
        if slo.max_p99_ms is not None and result.p99_response_time_ms > slo.max_p99_ms:
            violations.append(f"p99 {result.p99_response_time_ms:.2f} ms > {slo.max_p99_ms} ms")
        return violations

    @staticmethod
    def check_load_test(result: LoadTestResult, slo: Optional[SLOConstraints]) -> List[str]:
        if slo is None:
            return []

        violations = []
        if slo.min_success_rate is not None and result.success_rate < slo.min_success_rate:
            violations.append(f"success rate {result.success_rate:.4f} < {slo.min_success_rate}")
        if slo.max_average_ms is not None and result.average_response_time_ms > slo.max_average_ms:
            violations.append(f"average {result.average_response_time_ms:.2f} ms > {slo.max_average_ms} ms")
        if slo.max_p95_ms is not None and result.p95_response_time_ms > slo.max_p95_ms:
            violations.append(f"p95 {result.p95_response_time_ms:.2f} ms > {slo.max_p95_ms} ms")
        if slo.max_p99_ms is not None and result.p99_response_time_ms > slo.max_p99_ms:
            violations.append(f"p99 {result.p99_response_time_ms:.2f} ms > {slo.max_p99_ms} ms")
        if slo.min_throughput is not None and result.throughput < slo.min_throughput:
            violations.append(f"throughput {result.throughput:.2f} req/s < {slo.min_throughput} req/s")
        return violations


class ConfigLoader:
    @staticmethod
    def _parse_provider(provider_data: Any, index: int) -> ProviderConfig:
        if not isinstance(provider_data, dict):
            raise BenchmarkConfigError(f"Config file format error: provider {index} must be a dictionary")

        name = provider_data.get('name', f'provider_{index + 1}')
        provider_type = provider_data.get('type', 'mock')
        if provider_type not in ('mock', 'openai'):
            raise BenchmarkConfigError(
                f"Unsupported provider type '{provider_type}' for provider '{name}'. Supported types: mock, openai"
            )
        if provider_type == 'openai' and not provider_data.get('endpoint'):
            raise BenchmarkConfigError(f"Missing endpoint for openai provider '{name}'")

        return ProviderConfig(
            name=name,
            type=provider_type,
            model_name=provider_data.get('model'),
            endpoint_url=provider_data.get('endpoint'),
            api_key=provider_data.get('api_key'),
            max_output_tokens=provider_data.get('max_output_tokens'),
            min_response_time_ms=provider_data.get('min_response_time_ms', 100),
            max_response_time_ms=provider_data.get('max_response_time_ms', 1000),
            error_rate=provider_data.get('error_rate', 0.05),
            seed=provider_data.get('seed')
        )

    @staticmethod
    def config_from_dict(data: Dict[str, Any]) -> BenchmarkConfig:
        if not isinstance(data, dict):
            raise BenchmarkConfigError("Config file format error: root element must be a dictionary")

        g = data.get('global', {})
        if not isinstance(g, dict):
            raise BenchmarkConfigError("Config file format error: 'global' must be a dictionary")

        providers_data = data.get('providers', [])
        if not isinstance(providers_data, list):
            raise BenchmarkConfigError("Config file format error: 'providers' must be a list")
        providers = [ConfigLoader._parse_provider(p, idx) for idx, p in enumerate(providers_data)]

        mode_str = g.get('mode', 'benchmark')
        try:
            mode = BenchmarkMode(mode_str)
        except ValueError:
            raise BenchmarkConfigError(
                f"Unsupported mode: {mode_str}. Supported modes: benchmark, compare, load_test"
            )

        prompts = g.get('prompts', [])
        if not isinstance(prompts, list):
            raise BenchmarkConfigError("Config file format error: 'prompts' must be a list")
        prompts = [PromptLoader._entry_to_prompt(p) for p in prompts]
        if g.get('prompt_template') is not None:
            prompts.extend(expand_prompt_template(g['prompt_template']))

        return BenchmarkConfig(
            providers=providers,
            mode=mode,
            prompts=prompts,
            prompts_path=Path(g['prompts_file']) if g.get('prompts_file') else None,
            iterations=g.get('iterations', 1),
            max_concurrency=g.get('max_concurrency', 4),
            concurrent_requests=g.get('concurrent_requests', 10),
            load_test_prompt=g.get('load_test_prompt'),
            timeout=g.get('timeout', 300),
            output_dir=Path(g.get('output_dir', 'benchmark_results')),
            output_path=Path(g['output']) if g.get('output') else None,
            prometheus_textfile=Path(g['prometheus_textfile']) if g.get('prometheus_textfile') else None,
            slo_file=Path(g['slo_file']) if g.get('slo_file') else None,
            show_progress=g.get('show_progress', False),
            debug=g.get('debug', False)
        )

    @staticmethod
    def load_config(config_file: Union[str, Path]) -> BenchmarkConfig:
        config_file = Path(config_file)
        if not config_file.exists():
            raise BenchmarkConfigError(f"Config file does not exist: {config_file}")

        with open(config_file, 'r', encoding='utf-8') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise BenchmarkConfigError(f"Config file is not valid YAML: {e}") from e

        return ConfigLoader.config_from_dict(data)

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from llmbench import LLMBenchmark


@pytest.fixture
def benchmark():
    engine = LLMBenchmark(max_concurrency=4)
    yield engine
    engine.shutdown()


@pytest.fixture
def file_path(tmp_path_factory):
    return tmp_path_factory.mktemp("results") / "output.json"

# tests/conftest.py
import pytest
from loguru import logger

from fixplanner.models.benchmark import Benchmark
from fixplanner.models.fixes import CommandFix, NoFix, PlanFix, SkippedFix, TaskFix


@pytest.fixture(autouse=True)
def _reset_loguru():
    yield
    # the CLI installs sinks on streams captured by CliRunner
    logger.remove()


@pytest.fixture
def sample_hash():
    return {
        "id": "http://somplace.org/unique-name",  # "their" identity
        "name": "fixname",                        # mnemonic
        "family": "testbm",
        "version": "1.2.3",
        "facts": {"os": {"family": "os.family.test"}},
    }


@pytest.fixture
def sample_bm(sample_hash):
    return Benchmark.from_dict(sample_hash)


class RecordingFixProvider:
    """Fixes by section, like a small static mapping; remembers every call."""

    def __init__(self):
        self.calls = []

    def find_fixes(self, issue, nodes, facts):
        self.calls.append((issue, nodes, facts))
        if issue.section == "1.1.1":
            return {nodes: TaskFix("mytask")}
        if issue.section == "1.1.2":
            # different parameter for nodes ending with '.test'
            test = frozenset(n for n in nodes if n.endswith(".test"))
            prod = nodes - test
            return {
                test: TaskFix("mytask", {"env": "test"}),
                prod: TaskFix("mytask", {"env": "production"}),
            }
        if issue.section == "2.1.1":
            return {nodes: PlanFix("myplan")}
        if issue.section == "3.1.1":
            return {nodes: CommandFix("@echo all is well")}
        if issue.section == "4.1.1":
            return {nodes: SkippedFix()}
        return {nodes: NoFix()}


@pytest.fixture
def fix_provider():
    return RecordingFixProvider()


@pytest.fixture
def fixed_clock():
    return lambda: "a dark desert highway"

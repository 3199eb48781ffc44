"""Shared test fixtures for docledger."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pytest

from docledger.config.models import BundleSettings, LedgerConfig, RetrySettings
from docledger.llm.retry import RetryExecutor, RetryPolicy
from docledger.merkle.models import Node
from docledger.pipeline.processor import ProcessContext, ProcessResult


class FakeProcessor:
    """Records every call; raises queued errors for selected paths."""

    def __init__(self, errors: dict[str, Iterable[BaseException]] | None = None, cost: float = 10.0):
        self.calls: list[str] = []
        self.contexts: dict[str, ProcessContext] = {}
        self.cost = cost
        self._errors = {path: list(errs) for path, errs in (errors or {}).items()}

    async def process(self, node: Node, context: ProcessContext) -> ProcessResult:
        self.calls.append(node.path)
        self.contexts[node.path] = context
        queued = self._errors.get(node.path)
        if queued:
            raise queued.pop(0)
        if node.kind == "file":
            text = (context.root / node.path).read_text()
            return ProcessResult(artifact={"summary": f"file {node.path}: {text}"}, cost=self.cost)
        return ProcessResult(
            artifact={"summary": f"dir {node.path}", "children": sorted(context.children)},
            cost=self.cost,
        )


class RecordingSleep:
    """Stand-in for asyncio.sleep that returns immediately."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Two files at the root: a.txt = "x", b.txt = "y"."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.txt").write_bytes(b"x")
    (root / "b.txt").write_bytes(b"y")
    return root


@pytest.fixture
def nested_project(tmp_path: Path) -> Path:
    root = tmp_path / "nested"
    (root / "src" / "lib").mkdir(parents=True)
    (root / "docs").mkdir()
    (root / "README.md").write_text("# Project")
    (root / "src" / "main.py").write_text("print('hello')")
    (root / "src" / "lib" / "util.py").write_text("def helper(): pass")
    (root / "docs" / "guide.md").write_text("guide")
    return root


@pytest.fixture
def fake_processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def fast_executor(recording_sleep: RecordingSleep) -> RetryExecutor:
    return RetryExecutor(RetryPolicy(max_retries=3), sleep=recording_sleep, rand=lambda: 0.0)


@pytest.fixture
def config() -> LedgerConfig:
    return LedgerConfig(
        retry=RetrySettings(initial_delay=0.0, max_delay=0.0),
        bundle=BundleSettings(size=5, max_workers=1),
    )

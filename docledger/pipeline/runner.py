"""Run controller: drives the processor over changed paths and bundles results.

Execution order:
  1. Take the project lock
  2. Build the Merkle tree and load the manifest
  3. Resume or discard any staging log left by an interrupted run
  4. Diff the tree against the manifest
  5. Process changed files (bounded concurrency)
  6. Process changed directories, deepest first, one at a time; a directory
     with a failed or deferred child waits for a later run
  7. Merge staged results into the manifest every ``bundle.size`` successes
     and once more at the end
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from docledger.config.models import LedgerConfig
from docledger.errors import describe_error
from docledger.lock import ProcessLock, RunScope
from docledger.llm.retry import RetryExecutor, RetryPolicy
from docledger.manifest.models import Manifest
from docledger.manifest.store import create_manifest, load_manifest, merge_completed, save_manifest
from docledger.merkle.differ import detect_changes
from docledger.merkle.models import ChangeSet, Node
from docledger.merkle.tree import MerkleTree, sort_by_depth
from docledger.pipeline.processor import ProcessContext, Processor
from docledger.pipeline.recovery import ConfirmDiscard, recover_staging
from docledger.pipeline.report import RunReport
from docledger.staging.log import StagingStore

logger = logging.getLogger(__name__)


class Bundler:
    """Runs one incremental update of a project's artifacts."""

    def __init__(
        self,
        project_path: str | Path,
        processor: Processor,
        config: LedgerConfig | None = None,
        executor: RetryExecutor | None = None,
        confirm_discard: ConfirmDiscard | None = None,
    ) -> None:
        self.root = Path(project_path).resolve()
        self.config = config or LedgerConfig()
        self.processor = processor
        self.executor = executor or RetryExecutor(RetryPolicy.from_settings(self.config.retry))
        self.confirm_discard = confirm_discard

        state_dir = self.root / self.config.state.dir
        self.manifest_path = state_dir / self.config.state.manifest
        self.staging_path = state_dir / self.config.state.staging
        self.lock_path = state_dir / self.config.state.lock

    def exclude_rules(self) -> list[str]:
        """Configured rules, plus the state directory itself."""
        rules = list(self.config.exclude)
        if self.config.state.dir not in rules:
            rules.append(self.config.state.dir)
        return rules

    async def run(self, force: bool = False) -> RunReport:
        """Process everything that changed since the last run.

        With *force*, every node is treated as new. Raises ``LockContention``
        if another live process is running, ``StalePriorRun`` if a stale
        staging log was not approved for discard, and ``IOFailure`` if the
        tree cannot be read or state cannot be persisted.
        """
        with RunScope(ProcessLock(self.lock_path)):
            return await self._run(force)

    async def _run(self, force: bool) -> RunReport:
        tree = MerkleTree.build(self.root, self.exclude_rules())
        report = RunReport(root_hash=tree.root_hash)

        stored = load_manifest(self.manifest_path)
        manifest = stored or create_manifest()

        staging = StagingStore(self.staging_path)
        log, resumed = recover_staging(staging, tree.root_hash, self.confirm_discard)
        resumed_paths: set[str] = set()
        if resumed:
            report.resumed = True
            carried = list(log.completed)
            resumed_paths = {e.path for e in carried}
            report.resumed_paths = sorted(resumed_paths)
            if carried:
                manifest = merge_completed(manifest, tree.nodes, carried)
                save_manifest(self.manifest_path, manifest)
                staging.reset_completed()
                stored = manifest

        changes = self._detect(tree, manifest, force)
        report.new = sorted(n.path for n in changes.new)
        report.changed = sorted(n.path for n in changes.changed)
        report.unchanged = len(changes.unchanged)
        report.deleted = sorted(changes.deleted)
        logger.info(
            "%d new, %d changed, %d unchanged, %d deleted",
            len(report.new),
            len(report.changed),
            report.unchanged,
            len(report.deleted),
        )

        pending = [n for n in changes.pending if n.path not in resumed_paths]
        files = [n for n in pending if n.kind == "file"]
        directories = sort_by_depth(n for n in pending if n.kind == "directory")

        session = _RunSession(
            bundler=self,
            tree=tree,
            manifest=manifest,
            staging=staging,
            report=report,
            deleted=changes.deleted,
            manifest_dirty=stored is None,
        )
        await session.process_files(files)
        await session.process_directories(directories)
        session.finish()
        return report

    @staticmethod
    def _detect(tree: MerkleTree, manifest: Manifest, force: bool) -> ChangeSet:
        if not force:
            return detect_changes(tree.nodes, manifest)
        return ChangeSet(
            new=tuple(tree.nodes.values()),
            deleted=tuple(p for p in manifest.nodes if p not in tree.nodes),
        )


class _RunSession:
    """Mutable state of one run. Staging and manifest writes happen here, serialized."""

    def __init__(
        self,
        bundler: Bundler,
        tree: MerkleTree,
        manifest: Manifest,
        staging: StagingStore,
        report: RunReport,
        deleted: Sequence[str],
        manifest_dirty: bool,
    ) -> None:
        self.bundler = bundler
        self.tree = tree
        self.manifest = manifest
        self.staging = staging
        self.report = report
        self.deleted = tuple(deleted)
        self.manifest_dirty = manifest_dirty or bool(deleted)
        # path -> artifact produced during this run
        self.artifacts: dict[str, Any] = {}
        self.deferred: set[str] = set()
        self.since_merge = 0
        self.aborted = False

    # ------------------------------------------------------------------
    # Queues
    # ------------------------------------------------------------------

    async def process_files(self, files: Sequence[Node]) -> None:
        """Files have no inter-dependencies, so a few run at once."""
        if not files:
            return
        queue = deque(files)
        context = ProcessContext(root=self.bundler.root)

        async def worker() -> None:
            while queue and not self.aborted:
                await self._process_one(queue.popleft(), context)

        n_workers = min(self.bundler.config.bundle.max_workers, len(files))
        tasks = [asyncio.ensure_future(worker()) for _ in range(n_workers)]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def process_directories(self, directories: Sequence[Node]) -> None:
        """Deepest first, strictly one at a time.

        A directory whose child failed, or whose child directory was itself
        deferred, is deferred too. It is neither processed nor staged, so it
        stays pending until every child has an artifact.
        """
        for node in directories:
            if self.aborted:
                return
            blocked = self._blocked_children(node)
            if blocked:
                logger.info("Deferring %s: unfinished children %s", node.path, ", ".join(blocked))
                self.report.deferred.append(node.path)
                self.deferred.add(node.path)
                continue
            children = self._child_artifacts(node)
            if not children:
                logger.info("Skipping %s: no child has an artifact", node.path)
                self.report.skipped.append(node.path)
                continue
            await self._process_one(node, ProcessContext(root=self.bundler.root, children=children))

    def _blocked_children(self, node: Node) -> list[str]:
        failed = {f.path for f in self.staging.failed}
        return [c for c in node.children if c in failed or c in self.deferred]

    def _child_artifacts(self, node: Node) -> dict[str, Any]:
        children: dict[str, Any] = {}
        for child in node.children:
            if child in self.artifacts:
                children[child] = self.artifacts[child]
                continue
            current = self.tree.nodes.get(child)
            if current is not None and current.has_artifact:
                children[child] = current.artifact
        return children

    # ------------------------------------------------------------------
    # Per-path work
    # ------------------------------------------------------------------

    async def _process_one(self, node: Node, context: ProcessContext) -> None:
        retries = 0

        def on_retry(retry_number: int, delay: float, exc: BaseException) -> None:
            nonlocal retries
            retries = retry_number
            logger.debug("%s: retry %d in %.2fs after %s", node.path, retry_number, delay, exc)

        async def attempt():
            self.report.calls += 1
            return await self.bundler.processor.process(node, context)

        try:
            result = await self.bundler.executor.run(attempt, on_retry=on_retry)
        except Exception as exc:
            self._record_failure(node, exc, attempts=retries + 1)
            return
        self._record_success(node, result.artifact, result.cost)

    def _record_success(self, node: Node, artifact: Any, cost: float) -> None:
        self.staging.append_success(node.path, node.fingerprint, artifact, cost)
        self.artifacts[node.path] = artifact
        self.report.processed.append(node.path)
        self.report.cost += cost
        self.since_merge += 1
        logger.info("Processed %s", node.path)
        if self.since_merge >= self.bundler.config.bundle.size:
            self.bundle()

    def _record_failure(self, node: Node, exc: Exception, attempts: int) -> None:
        rate_limited = bool(getattr(exc, "rate_limited", False))
        entry = self.staging.append_failure(
            node.path,
            node.fingerprint,
            describe_error(exc),
            retry_count=attempts,
            rate_limited=rate_limited,
        )
        logger.warning(
            "Failed %s after %d attempt(s) (%d total): %s",
            node.path,
            attempts,
            entry.retry_count,
            entry.reason,
        )
        if rate_limited and not self.aborted:
            self.aborted = True
            self.report.aborted = True
            logger.error("Rate limit persisted through retries; aborting remaining queue")

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def bundle(self) -> None:
        """Fold staged completions into the manifest and persist it.

        A merge with nothing to write is skipped.
        """
        completed = self.staging.completed
        if not completed and not self.manifest_dirty:
            return
        self.manifest = merge_completed(self.manifest, self.tree.nodes, completed, self.deleted)
        save_manifest(self.bundler.manifest_path, self.manifest)
        if completed:
            self.staging.reset_completed()
        self.deleted = ()
        self.manifest_dirty = False
        self.since_merge = 0
        self.report.bundles += 1
        logger.debug("Merged %d staged entries into %s", len(completed), self.bundler.manifest_path)

    def finish(self) -> None:
        self.bundle()
        outstanding = list(self.staging.failed)
        self.report.failed = outstanding
        if outstanding:
            logger.warning(
                "%d path(s) still failing; staging log kept at %s",
                len(outstanding),
                self.staging.path,
            )
            return
        self.staging.clear()

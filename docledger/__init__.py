"""docledger - incremental, crash-safe artifact cache over a source tree."""

from docledger.config import LedgerConfig, load_config
from docledger.errors import (
    IOFailure,
    LedgerError,
    LockContention,
    RateLimited,
    StalePriorRun,
    TerminalRequestError,
    TransientServiceError,
)
from docledger.lock import ProcessLock, RunScope
from docledger.manifest import Manifest, load_manifest, save_manifest
from docledger.merkle import MerkleTree, Node, build_tree, detect_changes
from docledger.pipeline import Bundler, ProcessContext, Processor, ProcessResult, RunReport
from docledger.staging import StagingStore

__version__ = "0.1.0"

__all__ = [
    "Bundler",
    "IOFailure",
    "LedgerConfig",
    "LedgerError",
    "LockContention",
    "Manifest",
    "MerkleTree",
    "Node",
    "ProcessContext",
    "ProcessLock",
    "ProcessResult",
    "Processor",
    "RateLimited",
    "RunReport",
    "RunScope",
    "StagingStore",
    "StalePriorRun",
    "TerminalRequestError",
    "TransientServiceError",
    "build_tree",
    "detect_changes",
    "load_config",
    "load_manifest",
    "save_manifest",
]

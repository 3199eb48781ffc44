"""Staging log: per-run outcomes that survive interruption until merged."""

from docledger.staging.log import StagingStore
from docledger.staging.models import STAGING_VERSION, CompletedEntry, FailedEntry, StagingLog

__all__ = [
    "STAGING_VERSION",
    "CompletedEntry",
    "FailedEntry",
    "StagingLog",
    "StagingStore",
]

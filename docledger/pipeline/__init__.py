"""Run pipeline: processor boundary, staging recovery and the bundling run controller."""

from docledger.pipeline.processor import ProcessContext, Processor, ProcessResult
from docledger.pipeline.recovery import recover_staging
from docledger.pipeline.report import RunReport
from docledger.pipeline.runner import Bundler

__all__ = [
    "Bundler",
    "ProcessContext",
    "ProcessResult",
    "Processor",
    "RunReport",
    "recover_staging",
]

"""Logging, worker pool and audit report utilities."""

from .audit_report import AuditReport
from .logger import MillisecondsFormatter, PipelineLogger, configure_global_logging
from .worker_pool import WorkerPool

__all__ = ["AuditReport", "MillisecondsFormatter", "PipelineLogger", "WorkerPool", "configure_global_logging"]

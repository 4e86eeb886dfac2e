"""Logging pipeline: concurrent per-pod logging and the pass that drives it."""

from podlogger.pipeline.concurrent_logger import ConcurrentLogger, PassReport
from podlogger.pipeline.logging_pass import LoggingPass

__all__ = ["ConcurrentLogger", "LoggingPass", "PassReport"]

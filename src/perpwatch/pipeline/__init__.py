"""Cycle pipeline: batch scheduling and the end-to-end report cycle."""

from perpwatch.pipeline.cycle import ReportCycle, assemble_report
from perpwatch.pipeline.scheduler import BatchScheduler

__all__ = ["BatchScheduler", "ReportCycle", "assemble_report"]

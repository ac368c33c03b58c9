"""
Services Package
================

These are the "workers" that do the actual work.

- ReportAggregator: Counts submissions and sends the hourly report
- EmailService: Talks to the SMTP server
- compile_report: Turns counts into an HTML report
"""

from .email_service import EmailService, StartupError
from .report_builder import compile_report, dedupe_key
from .report_aggregator import ReportAggregator

__all__ = [
    "EmailService",
    "StartupError",
    "compile_report",
    "dedupe_key",
    "ReportAggregator",
]

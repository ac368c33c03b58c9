"""
Models Package
==============

This is where all our data models live.
Import from here instead of the individual files.

Example:
    from experiment_server.models import Submission, ReportDocument
"""

from .submission import (
    # What the field app sends us
    SensorSample,
    Submission,

    # What we send back
    SubmissionResult,
)
from .report import (
    # What flows through the aggregator
    NEVER_SENT,
    SubmissionEvent,
    ReportWindow,
    ReportDocument,

    # Operator-facing status
    ReportStatusResponse,
)

__all__ = [
    "SensorSample",
    "Submission",
    "SubmissionResult",
    "NEVER_SENT",
    "SubmissionEvent",
    "ReportWindow",
    "ReportDocument",
    "ReportStatusResponse",
]

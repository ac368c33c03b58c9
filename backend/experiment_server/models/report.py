"""
Report Models
=============
Data structures that flow through the report aggregator.

- SubmissionEvent: "one more submission from this beacon"
- ReportWindow: the (start, end] span a report covers
- ReportDocument: the compiled HTML report, ready to email
- ReportStatusResponse: what GET /api/reports/status returns
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Start of the very first window, before any report has been compiled
NEVER_SENT = datetime.min.replace(tzinfo=timezone.utc)


class SubmissionEvent(BaseModel):
    """Lightweight signal forwarded by the intake once a submission is accepted."""
    model_config = ConfigDict(frozen=True)

    source_id: str = Field(..., description="Beacon address the submission came from")


class ReportWindow(BaseModel):
    """Half-open interval (start, end] covered by one report."""
    model_config = ConfigDict(frozen=True)

    start: datetime = Field(..., description="Previous report time (exclusive)")
    end: datetime = Field(..., description="This report's time (inclusive)")


class ReportDocument(BaseModel):
    """
    A compiled report.

    Rows are sorted by source id. The document is never mutated after
    compile_report() builds it.
    """
    model_config = ConfigDict(frozen=True)

    window: ReportWindow
    rows: tuple[tuple[str, int], ...] = Field(default=(), description="(source id, count) pairs")
    html: str = Field(..., description="HTML body for the email")
    text: str = Field(..., description="Plain text alternative")

    @property
    def total(self) -> int:
        return sum(count for _, count in self.rows)


class ReportStatusResponse(BaseModel):
    """Snapshot of the aggregator, for operators checking on the server."""
    counters: dict[str, int] = Field(default_factory=dict, description="Counts since the last report")
    pending_total: int = Field(0, description="Sum of all counters")
    queued: int = Field(0, description="Events waiting to be processed by the report loop")
    last_sent_at: Optional[datetime] = Field(None, description="When the last report was compiled")
    last_dedupe_key: Optional[str] = Field(None, description="day-hour of the last report")
    report_hours: list[int] = Field(default_factory=list, description="Hours of the day reports go out")

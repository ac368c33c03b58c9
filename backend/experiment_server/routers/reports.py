"""
Reports API Router
==================

Read-only view of the report loop, for operators.

GET /api/reports/status - Counts waiting for the next report, last report time
"""

from fastapi import APIRouter, Depends

from experiment_server.models import ReportStatusResponse
from experiment_server.routers.results import get_report_aggregator

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.get("/status", response_model=ReportStatusResponse)
async def report_status(aggregator=Depends(get_report_aggregator)):
    """
    Get the counts collected since the last report.

    Answers straight away, even while a report is being emailed. Submissions
    the loop hasn't reached yet are not in the counters; `queued` says how
    many are waiting.
    """
    return aggregator.status()

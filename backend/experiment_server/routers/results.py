"""
Results API Router
==================

This is where the field app uploads experiment sessions.

ENDPOINTS:
---------
GET    /results                    - Reachability check used by the app (204)
POST   /results/{experiment_name}  - Upload one session

WHAT HAPPENS ON UPLOAD:
----------------------
1. Decode the JSON body (400 if it isn't valid JSON for a Submission)
2. Check nothing important is empty (412 if it is)
3. Tell the ReportAggregator "one more from this beacon"
4. Answer 201 {"Success": true}

Only step 3 touches the report loop, and it never waits on it.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from experiment_server.models import Submission, SubmissionResult
from experiment_server.utils.validation import validate_submission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/results", tags=["results"])


# =============================================================================
# DEPENDENCY INJECTION
# =============================================================================

def get_report_aggregator(request: Request):
    """
    Get the ReportAggregator the app was started with.

    Every endpoint that needs the aggregator uses this.
    """
    aggregator = getattr(request.app.state, "report_aggregator", None)
    if aggregator is None:
        raise HTTPException(status_code=500, detail="Server not fully started yet")
    return aggregator


def _result(status_code: int, success: bool, error: Optional[str] = None) -> JSONResponse:
    body = SubmissionResult(success=success, error=error)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", status_code=204)
async def results_ping():
    """The app pings this before uploading. Nothing to return."""
    return Response(status_code=204)


@router.post("/{experiment_name}")
async def submit_results(
    experiment_name: str,
    request: Request,
    aggregator=Depends(get_report_aggregator),
):
    """
    Upload one experiment session.

    **Body (JSON)**
    - Beacon Address, Datetime, SensorLog (required, non-empty)
    - Session Number, TimeStart, TimeEnd, Max/Min/AvgTemp, AvgHumidity, SurveyResults

    Each SensorLog entry needs a Datetime and exactly 5 Data values.
    """
    raw = await request.body()
    try:
        submission = Submission.model_validate_json(raw)
    except ValidationError as e:
        # Error parsing JSON data
        logger.warning(f"[{experiment_name}] Rejected submission: {e.error_count()} decode errors")
        return _result(400, False, str(e))

    if not validate_submission(submission):
        logger.warning(f"[{experiment_name}] Rejected submission from '{submission.beacon_address}': empty values")
        return _result(412, False, "Empty values")

    # Send data to be reported on
    aggregator.record_submission(submission.beacon_address)
    logger.info(
        f"[{experiment_name}] Accepted session {submission.session_number} "
        f"from {submission.beacon_address} ({len(submission.sensor_log)} samples)"
    )
    return _result(201, True)

"""
Utility modules for the experiment server backend.
"""

from experiment_server.utils.validation import (
    validate_submission,
    validate_report_hour,
    validate_report_hours,
    validate_port,
)

__all__ = [
    "validate_submission",
    "validate_report_hour",
    "validate_report_hours",
    "validate_port",
]

"""
Input Validation Utilities
===========================

Validation functions for experiment submissions and settings.
"""

from typing import Iterable

from experiment_server.models import Submission


# Readings per sensor log row: audio, pressure, temp, humidity, light
SENSOR_VALUES_PER_SAMPLE = 5


def validate_submission(submission: Submission) -> bool:
    """
    Check that a decoded submission has no empty required values.

    Args:
        submission: Decoded submission payload

    Returns:
        True if the submission can be accepted, False otherwise
    """
    if (not submission.datetime
            or not submission.beacon_address
            or submission.sensor_log is None):
        return False

    for sample in submission.sensor_log:
        if not sample.datetime or len(sample.data) != SENSOR_VALUES_PER_SAMPLE:
            return False
    return True


def validate_report_hour(hour: int) -> bool:
    """
    Validate an hour of the day.

    Args:
        hour: Hour value from the settings file

    Returns:
        True if 0-23, False otherwise
    """
    return 0 <= hour <= 23


def validate_report_hours(hours: Iterable[int]) -> list[int]:
    """Return the hours that are out of range (empty list means all good)."""
    return [h for h in hours if not validate_report_hour(h)]


def validate_port(port: int) -> bool:
    """Validate a TCP port number."""
    return 1 <= port <= 65535

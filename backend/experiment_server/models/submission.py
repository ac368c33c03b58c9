"""
Submission Models
=================
Pydantic models for the experiment payloads posted by the field app.

The JSON keys are the ones the phone app already sends ("Beacon Address",
"Session Number", ...), so every field carries an alias. Fields default to
empty values instead of being required: an incomplete payload still decodes
and is then rejected by validate_submission() with a 412.

Example Request:
    POST /results/pilot-study
    {
        "Beacon Address": "C4:7C:8D:6A:11:02",
        "Session Number": 1,
        "Datetime": "2024-05-02T09:13:00Z",
        "TimeStart": 0,
        "TimeEnd": 600,
        "MaxTemp": 24.1,
        "MinTemp": 21.7,
        "AvgTemp": 22.9,
        "AvgHumidity": 41.0,
        "SensorLog": [
            {"Datetime": "2024-05-02T09:03:00Z", "Data": [51.2, 1012.3, 22.8, 40.1, 310.0]}
        ],
        "SurveyResults": [3, 1, 0]
    }
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SensorSample(BaseModel):
    """
    One row of the sensor log.

    Data holds five readings in a fixed order:
    audio, pressure, temperature, humidity, light.
    """
    model_config = ConfigDict(populate_by_name=True)

    datetime: str = Field(default="", alias="Datetime", description="When the sample was taken")
    data: list[float] = Field(default_factory=list, alias="Data", description="Five sensor readings")


class Submission(BaseModel):
    """A full experiment session uploaded by one beacon."""
    model_config = ConfigDict(populate_by_name=True)

    beacon_address: str = Field(default="", alias="Beacon Address", description="Beacon that produced the data")
    session_number: int = Field(default=0, alias="Session Number")
    datetime: str = Field(default="", alias="Datetime", description="Session timestamp from the device")
    time_start: int = Field(default=0, alias="TimeStart")
    time_end: int = Field(default=0, alias="TimeEnd")
    max_temp: float = Field(default=0.0, alias="MaxTemp")
    min_temp: float = Field(default=0.0, alias="MinTemp")
    avg_temp: float = Field(default=0.0, alias="AvgTemp")
    avg_humidity: float = Field(default=0.0, alias="AvgHumidity")
    sensor_log: Optional[list[SensorSample]] = Field(default=None, alias="SensorLog")
    survey_results: list[int] = Field(default_factory=list, alias="SurveyResults")


class SubmissionResult(BaseModel):
    """
    Response body for POST /results/{experiment_name}.

    Keys are capitalised to match what the field app checks for.
    """
    model_config = ConfigDict(populate_by_name=True)

    success: bool = Field(..., alias="Success")
    error: Optional[str] = Field(None, alias="Error")

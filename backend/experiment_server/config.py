"""
Settings File
=============

Loads the JSON settings file the server is started with (app.cfg by default).

    {
        "Port": "8080",
        "ReportHours": [9, 17],
        "Sender": "experiment-server@example.org",
        "To": ["ops@example.org"],
        "SMTPHost": "smtp.example.org",
        "SMTPPort": 587,
        "SMTPUser": "experiment-server@example.org",
        "SMTPPassphrase": "app-password"
    }

Any problem reading or validating the file raises ConfigError. Callers
treat it as fatal: the server must not start with a broken config.
"""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from experiment_server.utils.validation import validate_port, validate_report_hours

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """The settings file is missing or invalid."""


class AppSettings(BaseModel):
    """Validated contents of the settings file."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    # Port is accepted as a string too, older config files quote it
    port: int = Field(..., alias="Port", description="Port the HTTP server listens on")
    report_hours: list[int] = Field(default_factory=list, alias="ReportHours",
                                    description="Hours of the day (0-23) to send reports")
    sender: str = Field(..., alias="Sender", description="From address for all mail")
    to: list[str] = Field(..., alias="To", min_length=1, description="Report recipients")
    smtp_host: str = Field(..., alias="SMTPHost")
    smtp_port: int = Field(587, alias="SMTPPort")
    smtp_user: str = Field("", alias="SMTPUser")
    smtp_passphrase: str = Field("", alias="SMTPPassphrase")

    @field_validator("port", "smtp_port")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not validate_port(value):
            raise ValueError(f"port {value} is out of range (1-65535)")
        return value

    @field_validator("report_hours")
    @classmethod
    def _check_hours(cls, value: list[int]) -> list[int]:
        bad = validate_report_hours(value)
        if bad:
            raise ValueError(f"report hours must be between 0 and 23, got {bad}")
        return sorted(set(value))


def load_app_settings(path: Union[str, Path]) -> AppSettings:
    """
    Read and validate the settings file.

    Args:
        path: Location of the JSON settings file

    Returns:
        The validated settings

    Raises:
        ConfigError: If the file can't be opened, isn't JSON, or fails validation
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise ConfigError(
            f"Failed to open config, does the config file ({path}) exist? Error: {e}"
        ) from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Failed to decode json in {path}. Error: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    try:
        settings = AppSettings.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid config in {path}: {e}") from e

    logger.info(f"Loaded config from {path} (report hours: {settings.report_hours})")
    return settings

"""
Loading of the static monitor settings: which endpoints to ping and where to store results.
"""
import json
import logging
import tomllib
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class SettingsError(Exception):
    """Raised when the settings file cannot be read or does not validate."""


class MonitorSettings(BaseModel):
    """
    Settings loaded once at startup and kept for the lifetime of the process.
    """

    model_config = ConfigDict(frozen=True)

    connection_string: str
    urls: List[str] = Field(min_length=1)
    cadence_seconds: Optional[float] = Field(default=None, gt=0)

    @field_validator("urls")
    @classmethod
    def strip_urls(cls, urls: List[str]) -> List[str]:
        stripped = [url.strip() for url in urls]
        if any(not url for url in stripped):
            raise ValueError("endpoint urls must not be blank")
        return stripped

    def masked_connection_string(self) -> str:
        """
        Return the connection string with any password replaced, suitable for logging.
        """
        parts = urlsplit(self.connection_string)
        if not parts.password:
            return self.connection_string
        netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
        return urlunsplit(parts._replace(netloc=netloc))


def load_settings(path: str | Path) -> MonitorSettings:
    """
    Read and validate settings from a JSON or TOML file.

    Args:
        path (str | Path): Location of the settings file. A ``.toml`` suffix selects
            TOML, anything else is parsed as JSON.

    Returns:
        MonitorSettings: The validated settings.

    Raises:
        SettingsError: If the file is missing, unparsable or invalid.
    """
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise SettingsError(f"failed to read config {path}: {e}") from e

    try:
        if path.suffix == ".toml":
            data = tomllib.loads(raw.decode("utf-8"))
        else:
            data = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise SettingsError(f"failed to parse config {path}: {e}") from e

    try:
        settings = MonitorSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsError(f"failed to unmarshal config {path}: {e}") from e

    logger.info(f"Loaded settings from {path} with {len(settings.urls)} endpoints")
    return settings

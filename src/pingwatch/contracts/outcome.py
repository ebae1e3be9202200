from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator


class Outcome(BaseModel):
    """
    Immutable result of probing one endpoint during one round.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str
    succeeded: bool
    duration: Optional[timedelta] = None
    round_started_at: datetime

    @model_validator(mode="after")
    def check_duration_matches_success(self):
        if self.succeeded and self.duration is None:
            raise ValueError("a successful outcome must carry a duration")
        if not self.succeeded and self.duration is not None:
            raise ValueError("a failed outcome must not carry a duration")
        return self

    @classmethod
    def success(cls, endpoint: str, duration: timedelta, round_started_at: datetime) -> "Outcome":
        return cls(
            endpoint=endpoint,
            succeeded=True,
            duration=duration,
            round_started_at=round_started_at,
        )

    @classmethod
    def failure(cls, endpoint: str, round_started_at: datetime) -> "Outcome":
        return cls(endpoint=endpoint, succeeded=False, round_started_at=round_started_at)

    @property
    def had_error(self) -> bool:
        return not self.succeeded

    def to_record(self) -> dict:
        """
        Return the row stored for this outcome, keyed by the results table column names.
        """
        return {
            "time": self.round_started_at,
            "duration": self.duration,
            "url": self.endpoint,
            "had_error": self.had_error,
        }

    def __repr__(self):
        duration = f"{self.duration.total_seconds():.4f}s" if self.duration else None
        return (
            f"Outcome(endpoint={self.endpoint}, succeeded={self.succeeded}, "
            f"duration={duration}, round_started_at={self.round_started_at.isoformat()})"
        )

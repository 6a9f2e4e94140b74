"""
Derived (never persisted) analytics shapes: ranges, trend points, groupings,
stats and batch outcomes.
"""

from datetime import date, timedelta

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.domain.records import EmailMessage


class DateRange(BaseModel):
    """Inclusive calendar-date range; `end` covers the whole end day."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date

    @model_validator(mode="after")
    def _check_order(self) -> "DateRange":
        if self.end < self.start:
            raise ValueError("end must not be before start")
        return self

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def dates(self) -> list[date]:
        return [self.start + timedelta(days=offset) for offset in range(self.days)]

    def signature(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


class TrendPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    count: int = Field(..., ge=0)


class GroupCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=1)
    count: int = Field(..., ge=1)


class PublicationStats(BaseModel):
    total: int = 0


class EmailStats(BaseModel):
    total: int = 0
    classified: int = 0
    pending: int = 0


class BatchItemFailure(BaseModel):
    id: str
    error: str


class BatchResult(BaseModel):
    """Per-item outcome of a concurrent batch; successes are never rolled back."""

    succeeded: list[EmailMessage] = Field(default_factory=list)
    failures: list[BatchItemFailure] = Field(default_factory=list)

    @property
    def committed(self) -> bool:
        return bool(self.succeeded)

    @property
    def failed_ids(self) -> list[str]:
        return [failure.id for failure in self.failures]

    def raise_for_failures(self) -> "BatchResult":
        # Imported here: errors.py depends on this module for the payload type
        from app.models.domain.errors import PartialBatchFailure

        if self.failures:
            raise PartialBatchFailure(self)
        return self

"""Pydantic schemas for notification copy configuration."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


class _CopyModel(BaseModel):
    """Copy files use camelCase keys; models are immutable once loaded."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class MessageTemplate(_CopyModel):
    """A candidate message. Title/body may contain {placeholders}."""

    id: str
    title: str
    body: str


class IntervalRange(_CopyModel):
    """Delay bounds in seconds. Order-independent: min may exceed max."""

    min: int
    max: int

    @property
    def low(self) -> int:
        return min(self.min, self.max)

    @property
    def high(self) -> int:
        return max(self.min, self.max)


class CopyStage(_CopyModel):
    """Elapsed-time threshold mapped to an interval range and a message pool."""

    id: Optional[str] = None
    start_after_seconds: int
    interval_seconds: IntervalRange
    messages: tuple[MessageTemplate, ...] = ()


class CopyFile(_CopyModel):
    """Copy configuration file schema."""

    schema_version: Optional[int] = None
    stages: tuple[CopyStage, ...]

    @field_validator("stages")
    @classmethod
    def validate_stages(cls, v: tuple[CopyStage, ...]) -> tuple[CopyStage, ...]:
        if not v:
            raise ValueError("stages must not be empty")
        # sorted() is stable: equal thresholds keep file order
        return tuple(sorted(v, key=lambda s: s.start_after_seconds))


def validate_copy_file(data: dict) -> CopyFile:
    """Validate a copy configuration dict."""
    return CopyFile.model_validate(data)

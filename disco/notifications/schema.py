"""Pydantic schemas for the persisted notification log."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DeliveryStatus = Literal["attempted", "delivered"]

ATTEMPTED: DeliveryStatus = "attempted"
DELIVERED: DeliveryStatus = "delivered"

LOG_FILE_VERSION = "2"


class NotificationLogEntry(BaseModel):
    """One logical notification, keyed by its delivery identifier.

    Persisted with camelCase keys (createdAt, isRead, copyId).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    created_at: datetime = Field(default_factory=datetime.now)
    status: DeliveryStatus
    title: str
    body: str
    is_read: bool = False
    copy_id: Optional[str] = None


class NotificationLogFile(BaseModel):
    """notification_log.json schema."""

    version: str = LOG_FILE_VERSION
    entries: list[NotificationLogEntry] = Field(default_factory=list)


def validate_log_file(data: dict) -> NotificationLogFile:
    """Validate notification_log.json."""
    return NotificationLogFile.model_validate(data)

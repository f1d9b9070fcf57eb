"""Notification copy: stages, cadence and message selection."""

from disco.copy.engine import (
    MISSING_MESSAGE_ID,
    MISSING_MESSAGE_TEXT,
    CopyEngine,
    CopyMessage,
    load_copy_file,
    replace_placeholders,
)
from disco.copy.schema import CopyFile, CopyStage, IntervalRange, MessageTemplate

__all__ = [
    "CopyEngine",
    "CopyFile",
    "CopyMessage",
    "CopyStage",
    "IntervalRange",
    "MISSING_MESSAGE_ID",
    "MISSING_MESSAGE_TEXT",
    "MessageTemplate",
    "load_copy_file",
    "replace_placeholders",
]

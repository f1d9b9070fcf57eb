"""Stage-based copy engine.

Turns "elapsed seconds" into the delay before the next reminder and the
reminder's text. Stages come from a JSON copy file loaded once at startup.
"""

from __future__ import annotations

import json
import random
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Mapping

from loguru import logger
from pydantic import ValidationError

from disco.copy.schema import CopyFile, CopyStage, validate_copy_file
from disco.errors import CopyConfigError

MISSING_MESSAGE_TEXT = "…"
MISSING_MESSAGE_ID = "missing_message"

DEFAULT_COPY_RESOURCE = "default_copy.json"


@dataclass(frozen=True)
class CopyMessage:
    """A rendered notification message."""

    title: str
    body: str
    copy_id: str


def load_copy_file(path: Path | None = None) -> CopyFile:
    """Load and validate copy configuration.

    Args:
        path: Copy JSON file. Uses the bundled default copy if not provided.

    Raises:
        CopyConfigError: the file is missing, not JSON, or fails validation.
    """
    try:
        if path is None:
            raw = resources.files("disco.copy").joinpath(DEFAULT_COPY_RESOURCE).read_text(
                encoding="utf-8"
            )
            source = f"<bundled {DEFAULT_COPY_RESOURCE}>"
        else:
            raw = Path(path).expanduser().read_text(encoding="utf-8")
            source = str(path)
    except OSError as e:
        raise CopyConfigError(f"Failed to read copy configuration: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CopyConfigError(f"Failed to parse copy configuration {source}: {e}") from e

    if not isinstance(data, dict):
        raise CopyConfigError(f"Copy configuration {source} must be a JSON object")

    try:
        copy_file = validate_copy_file(data)
    except ValidationError as e:
        raise CopyConfigError(f"Invalid copy configuration {source}: {e}") from e

    logger.debug(f"Loaded {len(copy_file.stages)} copy stages from {source}")
    return copy_file


def replace_placeholders(
    text: str,
    elapsed_seconds: int,
    replacements: Mapping[str, str] | None = None,
) -> str:
    """Substitute {elapsedSeconds}/{elapsedMinutes}/{elapsedHours}, then caller keys."""
    result = text
    result = result.replace("{elapsedSeconds}", str(elapsed_seconds))
    result = result.replace("{elapsedMinutes}", str(elapsed_seconds // 60))
    result = result.replace("{elapsedHours}", str(elapsed_seconds // 3600))

    for key, value in (replacements or {}).items():
        result = result.replace(f"{{{key}}}", str(value))

    return result


class CopyEngine:
    """
    Picks reminder copy and cadence for a given elapsed time.

    Stages are sorted ascending by ``start_after_seconds``. The active stage
    is the last one whose threshold has been reached; before the first
    threshold the first stage is used.
    """

    def __init__(self, copy_file: CopyFile | None = None, rng: random.Random | None = None):
        self._copy = copy_file if copy_file is not None else load_copy_file()
        self._stages = self._copy.stages
        self._rng = rng or random.Random()

    @classmethod
    def from_path(cls, path: Path | None = None, rng: random.Random | None = None) -> "CopyEngine":
        return cls(load_copy_file(path), rng=rng)

    @property
    def stages(self) -> tuple[CopyStage, ...]:
        return self._stages

    def select_stage(self, elapsed_seconds: int) -> CopyStage:
        """Return the stage in effect at ``elapsed_seconds``."""
        selected = self._stages[0]
        for stage in self._stages:
            if stage.start_after_seconds <= elapsed_seconds:
                selected = stage
            else:
                break
        return selected

    def next_interval(self, elapsed_seconds: int) -> int:
        """Random delay in seconds before the next notification, bounds inclusive."""
        interval = self.select_stage(elapsed_seconds).interval_seconds
        return self._rng.randint(interval.low, interval.high)

    def make_message(
        self,
        elapsed_seconds: int,
        extra_replacements: Mapping[str, str] | None = None,
    ) -> CopyMessage:
        """Pick a message for ``elapsed_seconds`` and fill its placeholders.

        Never raises: a stage without messages yields a placeholder message.
        """
        stage = self.select_stage(elapsed_seconds)
        if not stage.messages:
            logger.warning(f"Copy stage {stage.id or stage.start_after_seconds} has no messages")
            return CopyMessage(MISSING_MESSAGE_TEXT, MISSING_MESSAGE_TEXT, MISSING_MESSAGE_ID)

        template = self._rng.choice(stage.messages)
        return CopyMessage(
            title=replace_placeholders(template.title, elapsed_seconds, extra_replacements),
            body=replace_placeholders(template.body, elapsed_seconds, extra_replacements),
            copy_id=template.id,
        )

"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from disco.utils.helpers import get_data_path


class SchedulerConfig(BaseModel):
    """Batch notification scheduler configuration."""

    model_config = ConfigDict(extra="ignore")

    batch_size: int = Field(default=20, ge=0)  # Notifications scheduled ahead per session
    min_trigger_seconds: int = Field(default=1, ge=1)  # Delivery services reject shorter delays


class SessionConfig(BaseModel):
    """Disconnect session configuration."""

    tick_interval_s: float = Field(default=1.0, gt=0)


class Config(BaseSettings):
    """Root configuration for disco."""

    model_config = SettingsConfigDict(
        env_prefix="DISCO_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    copy_path: str | None = None  # None -> bundled default copy
    data_dir: str | None = None  # None -> ~/.disco (or DISCO_DATA_DIR)

    @property
    def data_path(self) -> Path:
        """Get expanded data directory."""
        if self.data_dir:
            path = Path(self.data_dir).expanduser()
            path.mkdir(parents=True, exist_ok=True)
            return path
        return get_data_path()

    @property
    def log_path(self) -> Path:
        """Get the persisted notification log file."""
        return self.data_path / "notification_log.json"

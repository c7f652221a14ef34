"""Pydantic configuration models for the prediction ledger."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class PathsConfig(BaseModel):
    """File paths configuration."""

    db_path: Path = Path("~/.ledger/ledger.db")
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.db_path = self.db_path.expanduser()
        if self.log_file is not None:
            self.log_file = self.log_file.expanduser()
        return self


class StalenessConfig(BaseModel):
    """Documents whose churn never triggers a reprediction."""

    skip_documents: list[str] = Field(default_factory=lambda: ["bundesliga-standings.csv"])


class StoreConfig(BaseModel):
    max_conflict_attempts: int = 5
    busy_timeout: float = 5.0

    @field_validator("max_conflict_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_conflict_attempts must be >= 1, got {v}")
        return v


class RunnerConfig(BaseModel):
    """Refresh runner configuration."""

    max_concurrency: int = 4
    max_repredictions: Optional[int] = None  # None = unlimited

    @field_validator("max_concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {v}")
        return v

    @field_validator("max_repredictions")
    @classmethod
    def validate_max_repredictions(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError(f"max_repredictions must be >= 0, got {v}")
        return v


class RetryConfig(BaseModel):
    """Retry/backoff configuration."""

    max_attempts: int = 3
    min_wait: float = 0.5
    max_wait: float = 5.0


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    json_logs: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class LedgerConfig(BaseModel):
    """Main configuration model."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    staleness: StalenessConfig = Field(default_factory=StalenessConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    runner: RunnerConfig = Field(default_factory=RunnerConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict) -> "LedgerConfig":
        """Create config from dict, coercing string paths."""
        if isinstance(data.get("paths"), dict):
            for key in ["db_path", "log_file"]:
                if isinstance(data["paths"].get(key), str):
                    data["paths"][key] = Path(data["paths"][key])
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")

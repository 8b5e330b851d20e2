"""Pipeline configuration loaded from environment variables."""

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "RECOMMENDER_"

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class PipelineSettings(BaseModel):
    """Settings shared by the selection, training and prediction stages."""

    train_fraction: float = Field(
        default=0.8,
        gt=0.0,
        lt=1.0,
        description="Share of the data used for training during evaluation",
    )
    min_test_size: int = Field(
        default=10,
        ge=1,
        description="Evaluation is skipped when the test set is smaller than this",
    )
    trainings_per_selection: int = Field(
        default=5,
        ge=1,
        description="Number of training runs between two selection runs",
    )
    max_workers: int = Field(
        default=4, ge=1, description="Size of the background worker pool"
    )
    data_dir: Path = Field(
        default=Path("data"), description="Base directory for persisted records"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log level '{value}'. Expected one of: "
                f"{', '.join(sorted(LOG_LEVELS))}"
            )
        return level

    @property
    def learning_record_dir(self) -> Path:
        return self.data_dir / "learning_records"

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        """Build settings from ``RECOMMENDER_*`` environment variables.

        Variables that are not set fall back to the field defaults.

        Raises:
            pydantic.ValidationError: If a variable holds an invalid value
        """
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls.model_validate(values)

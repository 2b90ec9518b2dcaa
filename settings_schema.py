from typing import Literal, Optional

from pydantic import BaseModel, ValidationError, field_validator

HISTORY_RANGES = (7, 30, 90)


class SettingsSchema(BaseModel):
    weight_unit: Literal["kg", "lb"] = "kg"
    history_range_days: int = 30
    draft_autosave_ms: int = 300
    max_rows: int = 10
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @field_validator("history_range_days")
    @classmethod
    def _known_range(cls, value: int) -> int:
        if value not in HISTORY_RANGES:
            raise ValueError(f"history_range_days must be one of {HISTORY_RANGES}")
        return value

    @field_validator("draft_autosave_ms", "max_rows")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))


def load_settings(data: dict) -> SettingsSchema:
    """Validate ``data`` and return the populated settings."""
    validate_settings(data)
    return SettingsSchema(**data)

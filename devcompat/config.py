"""Configuration loaded from environment (.env) and defaults."""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Locate the project root .env file regardless of CWD
_THIS_DIR = Path(__file__).resolve().parent          # devcompat/
_PROJECT_ROOT = _THIS_DIR.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="DEVCOMPAT_",
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Numeric fields: relative difference thresholds
    numeric_full_tolerance: float = 0.05
    numeric_partial_tolerance: float = 0.20
    numeric_epsilon: float = 1e-9

    # Array fields: Jaccard overlap at or above this is a full match
    array_full_overlap: float = 0.8

    # Enum fields: max position difference still considered partial
    enum_partial_distance: int = 1

    default_field_weight: float = 1.0
    default_rule_weight: float = 1.0

    # Power rule: recommended supply = requirement * headroom
    power_headroom: float = 1.2

    # Arrays/objects longer than this are summarised in messages
    summary_max_items: int = 5

    # Seconds to wait for an awaited schema lookup before degrading
    schema_lookup_timeout: float = 2.0

    # Directory of YAML/JSON category schemas (file-backed registry)
    schema_dir: str | None = None

    # Specification keys holding a device's display name
    display_name_fields: list[str] = ["name", "displayName", "display_name"]

    @model_validator(mode="after")
    def _check_thresholds(self) -> "Settings":
        for name in ("numeric_full_tolerance", "numeric_partial_tolerance", "array_full_overlap"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.numeric_full_tolerance > self.numeric_partial_tolerance:
            raise ValueError("numeric_full_tolerance must not exceed numeric_partial_tolerance")
        if self.enum_partial_distance < 0:
            raise ValueError("enum_partial_distance must be >= 0")
        return self

    @property
    def schema_path(self) -> Path | None:
        """Schema directory as Path; relative paths resolve against the project root."""
        if not self.schema_dir:
            return None
        p = Path(self.schema_dir)
        if not p.is_absolute():
            return (_PROJECT_ROOT / p).resolve()
        return p.resolve()


def get_settings() -> Settings:
    return Settings()

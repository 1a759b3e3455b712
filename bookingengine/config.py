"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import WEEKDAY_KEYS


class SlotsConfig(BaseModel):
    """Slot generation settings."""
    granularity_minutes: int = 30
    same_day_buffer_minutes: int = 15
    default_duration_minutes: int = 30

    @field_validator("granularity_minutes", "default_duration_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure step and duration are positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value

    @field_validator("same_day_buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"same_day_buffer_minutes cannot be negative, got {value}")
        return value


class MetricsConfig(BaseModel):
    """Reporting settings."""
    top_services_limit: int = 5
    week_starts_on: str = "monday"

    @field_validator("top_services_limit")
    @classmethod
    def validate_limit(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"top_services_limit must be greater than zero, got {value}")
        return value

    @field_validator("week_starts_on")
    @classmethod
    def validate_weekday(cls, value: str) -> str:
        """Accept any casing of an English weekday name."""
        normalized = value.strip().lower()
        if normalized not in WEEKDAY_KEYS:
            raise ValueError(f"week_starts_on must be one of {', '.join(WEEKDAY_KEYS)}, got '{value}'")
        return normalized


class StoreConfig(BaseModel):
    """Data store connection."""
    backend: Literal["memory", "rest"] = "memory"
    base_url: str = ""
    api_key: str = ""
    timeout_seconds: float = 10.0
    data_file: Optional[Path] = None

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"timeout_seconds must be greater than zero, got {value}")
        return value

    @model_validator(mode="after")
    def validate_backend_settings(self) -> "StoreConfig":
        """Ensure the REST backend has somewhere to connect to."""
        if self.backend == "rest" and not (self.base_url and self.api_key):
            raise ValueError("The rest backend needs base_url and api_key")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "America/Sao_Paulo"
    slots: SlotsConfig = Field(default_factory=SlotsConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone '{value}'") from exc
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative data files are resolved against the config file location
        data_file = config.store.data_file
        if data_file is not None and not data_file.is_absolute():
            config.store.data_file = (config_path.parent / data_file).resolve()

        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of bookingengine/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path

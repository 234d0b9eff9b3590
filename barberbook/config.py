"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import ValidationError
from .domain.template_builder import parse_clock_time, parse_interval


class BookingConfig(BaseModel):
    """Customer booking rules."""
    edit_window_hours: int = 24
    default_duration_minutes: int = 30

    @field_validator("edit_window_hours")
    @classmethod
    def validate_window(cls, value: int) -> int:
        if value < 0:
            raise ValueError("edit_window_hours must not be negative")
        return value

    @field_validator("default_duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure the fallback service duration is positive."""
        if value <= 0:
            raise ValueError("default_duration_minutes must be greater than zero")
        return value


class TemplateDefaults(BaseModel):
    """Default window offered by the weekly template generator."""
    start: str = "09:00"
    end: str = "18:00"
    interval_minutes: int = 30

    @field_validator("start", "end")
    @classmethod
    def validate_clock(cls, value: str) -> str:
        """Validate HH:MM format."""
        try:
            parse_clock_time(value)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @field_validator("interval_minutes")
    @classmethod
    def validate_interval(cls, value: int) -> int:
        try:
            return parse_interval(value)
        except ValidationError as exc:
            raise ValueError(str(exc)) from exc

    @model_validator(mode="after")
    def validate_window_order(self) -> "TemplateDefaults":
        """Ensure the configured window opens before it closes."""
        if parse_clock_time(self.end) <= parse_clock_time(self.start):
            raise ValueError("end must be later than start")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    supabase_url: str
    anon_key: str
    shop_name: str = "Barbearia"
    timezone: str = "America/Sao_Paulo"
    request_timeout_seconds: float = 15.0
    session_file: Optional[Path] = None
    booking: BookingConfig = Field(default_factory=BookingConfig)
    template_defaults: TemplateDefaults = Field(default_factory=TemplateDefaults)

    @field_validator("supabase_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"supabase_url must be an http(s) URL, got '{value}'")
        return value

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject unknown IANA timezone names early."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout_seconds must be greater than zero")
        return value

    def get_rest_url(self) -> str:
        return f"{self.supabase_url}/rest/v1"

    def get_auth_url(self) -> str:
        return f"{self.supabase_url}/auth/v1"

    def get_session_file(self) -> Path:
        if self.session_file is not None:
            return self.session_file.expanduser()
        return Path.home() / ".barberbook_session.json"

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

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of barberbook/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path

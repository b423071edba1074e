import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.shared.enums import DelayMode


class Settings(BaseSettings):
    # App
    app_name: str = "Agency Ops"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"  # ignored when debug is on

    # Database
    database_url: str = ""  # Loaded from environment, validated in model_validator
    database_echo: bool = False
    database_auto_create: bool = False  # create tables on startup (dev/test only)

    # Security
    secret_key: str = ""  # Loaded from environment, validated in model_validator
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 480  # 8 hours

    # CORS - comma-separated list of allowed origins
    allowed_origins: str = "http://localhost:3000,http://localhost:8080"

    # OpenTelemetry Distributed Tracing
    telemetry_enabled: bool = True  # Enable/disable distributed tracing
    telemetry_exporter: str = "console"  # Options: "console", "otlp", "none"
    telemetry_otlp_endpoint: str | None = None  # e.g., "http://localhost:4317"
    telemetry_sample_rate: float = 1.0  # Sampling rate (0.0-1.0, 1.0 = 100%)
    telemetry_environment: str = "development"  # deployment environment tag

    # Workflow engine
    workflow_action_timeout_seconds: float = 30.0  # deadline per action call
    workflow_delay_mode: str = DelayMode.SLEEP.value  # Options: "sleep", "skip"
    workflow_max_triggers: int = 2

    # Action effects (side-effect collaborator)
    action_effects_url: str | None = None  # None = dry-run logging effects
    action_effects_timeout_seconds: float = 10.0

    # Scheduled trigger ticker
    schedule_tick_enabled: bool = False
    schedule_tick_interval_seconds: int = 60

    @model_validator(mode="after")
    def validate_config(self) -> "Settings":
        """Validate required values and workflow engine options"""
        # Validate required fields are loaded from environment
        if not self.database_url:
            raise ValueError("DATABASE_URL is required. Set in environment or .env file.")
        if not self.secret_key:
            raise ValueError("SECRET_KEY is required. Generate with: openssl rand -hex 32")

        if self.workflow_delay_mode not in DelayMode.values():
            raise ValueError(
                f"Invalid workflow_delay_mode '{self.workflow_delay_mode}'. "
                f"Must be one of: {', '.join(DelayMode.values())}"
            )
        if self.workflow_action_timeout_seconds <= 0:
            raise ValueError("workflow_action_timeout_seconds must be positive")
        if self.workflow_max_triggers < 1:
            raise ValueError("workflow_max_triggers must be at least 1")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Invalid log_level '{self.log_level}'")
        if self.telemetry_exporter not in ("console", "otlp", "none"):
            raise ValueError(
                f"Invalid telemetry_exporter '{self.telemetry_exporter}'. "
                f"Must be one of: 'console', 'otlp', 'none'"
            )
        return self

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="allow", case_sensitive=False
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()

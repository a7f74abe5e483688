"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class GatewayConfig(BaseSettings):
    """Consultation API client configuration."""

    model_config = {"env_prefix": "CONSULTFLOW_GATEWAY_"}

    base_url: str = "http://localhost:4001"
    timeout_seconds: float = 10.0
    session_cookie_name: str = "access_token"
    session_cookie: str | None = None


class AutoSaveConfig(BaseSettings):
    """Debounce and retry settings for draft auto-save."""

    model_config = {"env_prefix": "CONSULTFLOW_AUTOSAVE_"}

    delay_seconds: float = 2.0
    max_retries: int = 3
    backoff_base_seconds: float = 2.0
    reset_retries_on_edit: bool = True


class FormConfig(BaseSettings):
    """Consultation form definition configuration."""

    model_config = {"env_prefix": "CONSULTFLOW_FORM_"}

    definition_path: str = "config/consultation_form.yml"


class ServerConfig(BaseSettings):
    """Reference consultation API configuration."""

    model_config = {"env_prefix": "CONSULTFLOW_SERVER_"}

    client_url: str = "http://localhost:3000"
    require_session: bool = True
    session_cookie_name: str = "access_token"
    default_page_size: int = 20
    max_page_size: int = 100


class DatabaseConfig(BaseSettings):
    """Consultation storage configuration. Empty URL keeps data in memory."""

    model_config = {"env_prefix": "CONSULTFLOW_DATABASE_"}

    url: str = ""
    echo: bool = False
    pool_size: int = 5


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "CONSULTFLOW_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    autosave: AutoSaveConfig = Field(default_factory=AutoSaveConfig)
    form: FormConfig = Field(default_factory=FormConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

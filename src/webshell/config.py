"""Pydantic settings for the webshell service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = {"env_prefix": "WEBSHELL_"}

    sandbox_image: str = "alpine:latest"
    container_name_prefix: str = "webshell-"
    command_timeout_seconds: float = 5.0
    session_idle_timeout_seconds: float = 30 * 60
    janitor_interval_seconds: float = 5 * 60
    sandbox_home_prefix: str = "/home/"
    max_output_bytes: int = 65_536  # 64 KB per stream
    memory_limit_mb: int = 256
    pids_limit: int = 64
    cors_allowed_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    log_level: str = "INFO"

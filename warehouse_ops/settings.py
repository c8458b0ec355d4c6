from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Service settings.

    Notes:
    - Defaults are local (SQLite file next to the repo) so the service runs without setup.
    - Every field can be overridden with a `WAREHOUSE_` prefixed env var.
    """

    model_config = SettingsConfigDict(env_prefix="WAREHOUSE_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"

    session_max_age_seconds: int = 60 * 60 * 8
    session_cookie_secure: bool = False

    login_retry_attempts: int = 3
    login_retry_base_delay: float = 0.2
    transaction_max_attempts: int = 5

    seed_demo_data: bool = True

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "warehouse.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()

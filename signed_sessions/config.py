"""Application configuration via environment variables."""

from __future__ import annotations

import logging
from typing import Any

from pydantic_settings import BaseSettings

from .session import DynamoDBSessionStore, InMemoryStore, SessionStore

logger = logging.getLogger(__name__)

MEMORY_STORE_WARNING = (
    "The in-memory session store is not designed for a production "
    "environment: it will leak memory and will not scale past a single process."
)


class Settings(BaseSettings):
    session_secret: str = "change-me-in-production"
    session_previous_secrets: str = ""  # comma-separated, still accepted on read
    session_name: str = "connect.sid"
    session_resave: bool = True
    session_save_uninitialized: bool = True
    session_rolling: bool = False
    session_unset: str = "keep"  # "keep" or "destroy"
    session_proxy: bool | None = None
    session_propagate_touch: bool = True
    session_cookie_path: str = "/"
    session_cookie_domain: str | None = None
    session_cookie_secure: str = "false"  # "true", "false" or "auto"
    session_cookie_http_only: bool = True
    session_cookie_same_site: str | None = None
    session_cookie_max_age: float | None = None  # seconds
    session_backend: str = "memory"  # "memory" or "dynamodb"
    dynamodb_table: str = "sessions"
    dynamodb_endpoint: str = ""  # For local DynamoDB
    dynamodb_region: str = "us-west-2"
    environment: str = "development"

    @property
    def session_secrets(self) -> list[str]:
        previous = [s.strip() for s in self.session_previous_secrets.split(",") if s.strip()]
        return [self.session_secret, *previous]

    @property
    def cookie_options(self) -> dict[str, Any]:
        secure: bool | str = self.session_cookie_secure.lower()
        if secure != "auto":
            secure = secure in ("1", "true", "yes", "on")
        return {
            "path": self.session_cookie_path,
            "domain": self.session_cookie_domain,
            "secure": secure,
            "http_only": self.session_cookie_http_only,
            "same_site": self.session_cookie_same_site,
            "max_age": self.session_cookie_max_age,
        }

    model_config = {"env_prefix": "", "case_sensitive": False}


settings: Settings | None = None


def get_settings() -> Settings:
    global settings
    if settings is None:
        settings = Settings()
    return settings


def override_settings(s: Settings) -> None:
    """For testing: inject a Settings instance."""
    global settings
    settings = s


def middleware_options(s: Settings) -> dict[str, Any]:
    """Keyword arguments for SessionMiddleware (everything except the store)."""
    return {
        "secret": s.session_secrets,
        "name": s.session_name,
        "resave": s.session_resave,
        "save_uninitialized": s.session_save_uninitialized,
        "rolling": s.session_rolling,
        "unset": s.session_unset,
        "proxy": s.session_proxy,
        "propagate_touch": s.session_propagate_touch,
        "cookie": s.cookie_options,
    }


def check_store_advisory(s: Settings, store: SessionStore) -> bool:
    """Warn when the in-memory store is used in production. Returns True if warned."""
    if s.environment.lower() == "production" and isinstance(store, InMemoryStore):
        logger.warning(MEMORY_STORE_WARNING)
        return True
    return False


def build_store(s: Settings) -> SessionStore:
    """Store named by ``session_backend``."""
    if s.session_backend == "dynamodb":
        return DynamoDBSessionStore(
            table_name=s.dynamodb_table,
            endpoint_url=s.dynamodb_endpoint,
            region_name=s.dynamodb_region,
        )
    return InMemoryStore()

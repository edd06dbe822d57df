# news_copilot/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from news_copilot.sql_policy import ARTICLES_POLICY, ColumnPolicy


class ConfigurationError(Exception):
    """Raised before any connection attempt when configuration is unusable."""


@dataclass(frozen=True)
class AppConfig:
    database_url: Optional[str] = None
    primary_domain_url: Optional[str] = None
    model: str = "openai/gpt-4.1-mini"
    connect_timeout_s: int = 30
    statement_timeout_ms: int = 60_000
    max_rows: int = 1000
    log_level: str = "INFO"
    column_policy: ColumnPolicy = field(default=ARTICLES_POLICY)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ

        try:
            policy = ARTICLES_POLICY.with_overrides(
                guarded_table=env.get("NEWS_GUARDED_TABLE") or None,
                forbidden_columns=_split_list(env.get("NEWS_FORBIDDEN_COLUMNS")),
                allowed_columns=_split_list(env.get("NEWS_ALLOWED_COLUMNS")),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid column policy: {e}") from e

        return cls(
            database_url=env.get("NEWS_DATABASE_URL") or None,
            primary_domain_url=env.get("PRIMARY_DOMAIN_URL") or None,
            model=env.get("MODEL") or cls.model,
            connect_timeout_s=_int(env, "NEWS_DB_CONNECT_TIMEOUT_S", cls.connect_timeout_s),
            statement_timeout_ms=_int(env, "NEWS_DB_STATEMENT_TIMEOUT_MS", cls.statement_timeout_ms),
            max_rows=_int(env, "NEWS_DB_MAX_ROWS", cls.max_rows),
            log_level=(env.get("LOG_LEVEL") or cls.log_level).upper(),
            column_policy=policy,
        )

    def require_database_url(self) -> str:
        if not self.database_url:
            raise ConfigurationError(
                "No connection string provided and NEWS_DATABASE_URL is not set"
            )
        return self.database_url

    @property
    def model_name(self) -> str:
        # "openai/gpt-4o" -> "gpt-4o"
        return self.model.split("/", 1)[1] if "/" in self.model else self.model


def _split_list(raw: Optional[str]) -> Optional[Tuple[str, ...]]:
    if raw is None or not raw.strip():
        return None
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value

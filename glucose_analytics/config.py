"""Explicit settings objects for the engine and the storage client."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

ENV_PREFIX = "GLUCOSE_ANALYTICS_"


def _env(name: str, environ: Mapping[str, str], default: Optional[str] = None) -> Optional[str]:
    value = environ.get(f"{ENV_PREFIX}{name}")
    if value is None or value == "":
        return default
    return value


@dataclass(frozen=True)
class AnalyticsSettings:
    """Engine settings and default analyzer thresholds."""

    max_workers: int = 5
    local_timezone: Optional[str] = None
    thresholds: Mapping[str, Any] = field(default_factory=dict)
    analyzer_settings: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AnalyticsSettings":
        environ = os.environ if environ is None else environ
        return cls(
            max_workers=int(_env("MAX_WORKERS", environ, "5")),
            local_timezone=_env("TIMEZONE", environ),
        )


@dataclass(frozen=True)
class StorageSettings:
    """Connection details for the Supabase REST endpoint."""

    base_url: str
    api_key: str
    timeout_seconds: float = 30.0
    connect_timeout_seconds: float = 10.0
    page_size: int = 1000

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("Storage base_url is not configured")
        if not self.api_key:
            raise ValueError("Storage api_key is not configured")
        if self.page_size < 1:
            raise ValueError("page_size must be at least 1")

    @property
    def rest_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/rest/v1"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StorageSettings":
        environ = os.environ if environ is None else environ
        return cls(
            base_url=_env("SUPABASE_URL", environ, "") or "",
            api_key=_env("SUPABASE_KEY", environ, "") or "",
            timeout_seconds=float(_env("HTTP_TIMEOUT", environ, "30")),
            page_size=int(_env("PAGE_SIZE", environ, "1000")),
        )

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List
from urllib.parse import urlparse

DEFAULT_DESIGNER_URL = "https://designer.glibatree.com/api/v1/design"


def _as_bool(value: str | None, default: bool) -> bool:
    """Interpret common truthy / falsy strings while providing a default."""

    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_float(value: str | None, default: float, *, minimum: float = 0.0) -> float:
    if value is None or not value.strip():
        return default
    try:
        return max(float(value), minimum)
    except (TypeError, ValueError):
        return default


def _parse_allowed_origins(raw: str | None) -> List[str]:
    """Normalise comma-separated origins into values accepted by CORSMiddleware."""

    if not raw:
        return ["*"]

    cleaned: List[str] = []
    for origin in raw.split(","):
        value = origin.strip()
        if not value:
            continue
        if value == "*":
            return ["*"]

        parsed = urlparse(value)
        if parsed.scheme and parsed.netloc:
            normalised = f"{parsed.scheme}://{parsed.netloc}"
        else:
            normalised = value

        if normalised not in cleaned:
            cleaned.append(normalised)

    return cleaned or ["*"]


@dataclass
class DesignerConfig:
    api_url: str = DEFAULT_DESIGNER_URL
    api_key: str | None = None
    timeout: float = 60.0
    verify_tls: bool = True

    @property
    def is_configured(self) -> bool:
        return bool(self.api_url and self.api_url.strip())

    @classmethod
    def from_env(cls) -> "DesignerConfig":
        api_url = os.getenv("DESIGNER_API_URL") or os.getenv("GLIBATREE_API_URL") or DEFAULT_DESIGNER_URL
        api_key = os.getenv("DESIGNER_API_KEY") or os.getenv("GLIBATREE_API_KEY")
        return cls(
            api_url=api_url.strip(),
            api_key=api_key,
            timeout=_as_float(os.getenv("DESIGNER_TIMEOUT"), 60.0, minimum=1.0),
            verify_tls=_as_bool(os.getenv("DESIGNER_VERIFY_TLS"), True),
        )


@dataclass
class ExportConfig:
    pixel_ratio: float = 1.0

    @classmethod
    def from_env(cls) -> "ExportConfig":
        return cls(pixel_ratio=_as_float(os.getenv("EXPORT_PIXEL_RATIO"), 1.0, minimum=0.25))


@dataclass
class Settings:
    environment: str
    log_level: str
    allowed_origins: List[str]
    designer: DesignerConfig
    export: ExportConfig


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        allowed_origins=_parse_allowed_origins(os.getenv("ALLOWED_ORIGINS", "*")),
        designer=DesignerConfig.from_env(),
        export=ExportConfig.from_env(),
    )


__all__ = ["DesignerConfig", "ExportConfig", "Settings", "get_settings"]

"""Runtime settings for the storefront cart engine.

Values come from the process environment, optionally seeded from a ``.env``
file at the project root.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=ROOT_DIR / ".env")

DEFAULT_PLACEHOLDER_IMAGE = "/placeholder.png"


def _get_env(env: Mapping[str, str], *keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = env.get(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    v = _get_env(env, key)
    if v is None:
        return default
    try:
        value = float(v)
    except ValueError as exc:
        raise ValueError(f"{key} must be a number, got {v!r}") from exc
    if value <= 0:
        raise ValueError(f"{key} must be > 0")
    return value


def _get_decimal(env: Mapping[str, str], key: str, default: str) -> Decimal:
    v = _get_env(env, key, default=default)
    try:
        value = Decimal(v)
    except InvalidOperation as exc:
        raise ValueError(f"{key} must be a decimal, got {v!r}") from exc
    if value < 0:
        raise ValueError(f"{key} must be >= 0")
    return value


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    tax_rate: Decimal
    currency: str
    request_timeout: float
    merge_timeout: float
    storage_path: str | None
    placeholder_image: str
    log_level: str


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``env`` (defaults to ``os.environ``)."""
    env = os.environ if env is None else env
    return Settings(
        api_base_url=_get_env(env, "STOREFRONT_API_BASE_URL", "BACKEND_API_URL", default="") or "",
        tax_rate=_get_decimal(env, "STOREFRONT_TAX_RATE", default="0"),
        currency=_get_env(env, "STOREFRONT_CURRENCY", default="USD") or "USD",
        request_timeout=_get_float(env, "STOREFRONT_REQUEST_TIMEOUT", default=10.0),
        merge_timeout=_get_float(env, "STOREFRONT_MERGE_TIMEOUT", default=30.0),
        storage_path=_get_env(env, "STOREFRONT_STORAGE_PATH"),
        placeholder_image=_get_env(env, "STOREFRONT_PLACEHOLDER_IMAGE", default=DEFAULT_PLACEHOLDER_IMAGE)
        or DEFAULT_PLACEHOLDER_IMAGE,
        log_level=_get_env(env, "STOREFRONT_LOG_LEVEL", default="INFO") or "INFO",
    )


settings = load_settings()

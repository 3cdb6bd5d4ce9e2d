from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, ValidationError

from .constants import DEFAULT_API_BASE_URL, LOGGER

API_BASE_URL_ENV_KEYS = (
    "SHOP_API_BASE_URL",
    "NEXT_PUBLIC_API_URL",
    "VITE_API_URL",
    "API_URL",
    "BACKEND_URL",
)

_runtime_api_base_url: str | None = None


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a numeric value.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def normalize_url(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed.rstrip("/")


def configure_api_base_url(url: str | None) -> None:
    """Override the base URL for this process; ``None`` restores env lookup."""
    global _runtime_api_base_url
    _runtime_api_base_url = normalize_url(url)


def get_api_base_url() -> str:
    if _runtime_api_base_url:
        return _runtime_api_base_url
    for key in API_BASE_URL_ENV_KEYS:
        value = normalize_url(os.getenv(key))
        if value:
            return value
    return DEFAULT_API_BASE_URL


def validate_api_base_url(url: str) -> str:
    try:
        AnyHttpUrl(url)
    except ValidationError as error:
        raise RuntimeError(
            f"API base URL must be a valid http(s) URL (got {url!r})."
        ) from error
    return url


def build_api_url(path: str) -> str:
    base_url = get_api_base_url().rstrip("/")
    api_path = path if path.startswith("/") else f"/{path}"
    return f"{base_url}{api_path}"


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("SHOP_API_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled

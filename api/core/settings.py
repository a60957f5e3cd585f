"""
Environment-backed settings shared by every feature package.

Values are read on each call so tests can flip them with monkeypatch.setenv.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_IMAGES_DIR = "public/images"
DEFAULT_CORS_ORIGINS = "http://127.0.0.1:3000"


def env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def images_dir() -> Path:
    return Path(env_str("IMAGES_DIR", DEFAULT_IMAGES_DIR))


def cors_origins() -> list[str]:
    raw = env_str("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def listen_port() -> int:
    return env_int("PORT", 8000)


def log_level() -> str:
    return env_str("LOG_LEVEL", "INFO").upper()

"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "parse-video",
    "environment": "dev",
    "http": {
        "timeout_seconds": 15.0,
        "user_agent": (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 16_6 like Mac OS X) "
            "AppleWebKit/605.1.15 (KHTML, like Gecko) Version/16.6 "
            "Mobile/15E148 Safari/604.1 Edg/122.0.0.0"
        ),
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
    "relay": {
        "timeout_seconds": 20.0,
        "verify_tls": False,
    },
    "douyin": {
        "retry_max_attempts": 30,
        "retry_backoff_min_seconds": 0.1,
        "retry_backoff_max_seconds": 0.3,
    },
}

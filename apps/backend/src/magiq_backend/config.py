"""Configuration management for the image-magiq backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from magiq_shared.env import env_bool, env_int, env_list


@dataclass(frozen=True)
class BackendConfig:
    """Backend configuration loaded from environment variables."""

    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"
    api_keys: frozenset[str] = field(default_factory=frozenset)
    max_upload_mb: int = 10
    allow_url_fetch: bool = False
    request_timeout_ms: int = 15_000
    rate_limit_window_ms: int = 60_000
    rate_limit_max: int = 60
    cors_origins: tuple[str, ...] = ("*",)
    trust_proxy: bool = True

    @classmethod
    def load(cls) -> BackendConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HOST", "0.0.0.0"),
            port=env_int("PORT", 3000, minimum=1, maximum=65535),
            log_level=os.getenv("LOG_LEVEL", "info"),
            api_keys=frozenset(env_list("API_KEYS", "API_KEY")),
            max_upload_mb=env_int("MAX_UPLOAD_MB", 10, minimum=1),
            allow_url_fetch=env_bool("ALLOW_URL_FETCH", False),
            request_timeout_ms=env_int("REQUEST_TIMEOUT_MS", 15_000, minimum=1000),
            rate_limit_window_ms=env_int("RATE_LIMIT_WINDOW_MS", 60_000, minimum=1000),
            rate_limit_max=env_int("RATE_LIMIT_MAX", 60, minimum=1),
            cors_origins=env_list("CORS_ORIGINS") or ("*",),
            trust_proxy=env_bool("TRUST_PROXY", True),
        )

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def request_timeout(self) -> float:
        return self.request_timeout_ms / 1000

    @property
    def rate_limit_window(self) -> float:
        return self.rate_limit_window_ms / 1000

    @property
    def logging_level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO

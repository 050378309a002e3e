"""Process-wide conversion defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from magiq_shared.env import env_bool, env_int


@dataclass(frozen=True)
class ConverterConfig:
    """Converter configuration loaded from environment variables."""

    default_quality: int = 80
    default_lossless: bool = False
    webp_effort: int = 4
    strip_metadata: bool = True
    concurrency: int = 2
    cache_dir: Path | None = None
    cache_ttl_sec: int = 86_400

    @classmethod
    def load(cls) -> ConverterConfig:
        """Load configuration from environment variables."""
        cache_dir = os.getenv("CACHE_DIR", "")
        return cls(
            default_quality=env_int("DEFAULT_QUALITY", 80, minimum=1, maximum=100),
            default_lossless=env_bool("DEFAULT_LOSSLESS", False),
            webp_effort=env_int("WEBP_EFFORT", 4, minimum=0, maximum=6),
            strip_metadata=env_bool("STRIP_METADATA", True),
            concurrency=env_int("CONCURRENCY", 2, minimum=0),
            cache_dir=Path(cache_dir) if cache_dir else None,
            cache_ttl_sec=env_int("CACHE_TTL_SEC", 86_400, minimum=0),
        )

    @property
    def cache_enabled(self) -> bool:
        return self.cache_dir is not None

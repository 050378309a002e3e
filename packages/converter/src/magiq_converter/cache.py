"""
Content-addressed cache for conversion outputs.

Entries live in a flat directory, one <fingerprint>.webp file each. The file
mtime is the write time used for TTL checks. Writes go to a private
temporary file first and are renamed into place, so readers only ever see
complete entries. Caching is an optimization: write failures are logged and
dropped, never raised.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Callable, Protocol

from .config import ConverterConfig
from .options import ConversionOptions

logger = logging.getLogger(__name__)

CACHE_SUFFIX = ".webp"


def derive_key(data: bytes, options: ConversionOptions) -> str:
    """Fingerprint of the source bytes plus every option that affects output."""
    digest = hashlib.sha256()
    digest.update(data)
    digest.update(b"\n")
    payload = json.dumps(options.as_dict(), sort_keys=True, separators=(",", ":"))
    digest.update(payload.encode("utf-8"))
    return digest.hexdigest()


class ConversionCache(Protocol):
    enabled: bool

    def lookup(self, key: str) -> bytes | None:  # pragma: no cover - interface
        ...

    def store(self, key: str, data: bytes) -> None:  # pragma: no cover - interface
        ...


class NullCache:
    """Used when no cache directory is configured."""

    enabled = False

    def lookup(self, key: str) -> bytes | None:
        return None

    def store(self, key: str, data: bytes) -> None:
        return None


class FileCache:
    """Flat directory cache with TTL freshness and atomic writes."""

    enabled = True

    def __init__(
        self,
        directory: Path,
        ttl_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self.directory = Path(directory)
        self.ttl_seconds = max(0, ttl_seconds)
        self._clock = clock

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}{CACHE_SUFFIX}"

    def is_stale(self, written_at: float) -> bool:
        if self.ttl_seconds == 0:
            return False
        return self._clock() - written_at > self.ttl_seconds

    def lookup(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            if self.is_stale(path.stat().st_mtime):
                logger.debug("Cache entry %s is stale", key)
                return None
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None
        logger.debug("Cache hit %s (%d bytes)", key, len(data))
        return data

    def store(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        tmp_path = self.directory / f".{path.name}.{uuid.uuid4().hex}.tmp"
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except OSError as e:
            logger.warning("Cache write failed for %s: %s", key, e)
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            return
        logger.debug("Cached %s (%d bytes)", key, len(data))


def build_cache(config: ConverterConfig) -> ConversionCache:
    if not config.cache_enabled:
        return NullCache()
    return FileCache(config.cache_dir, config.cache_ttl_sec)

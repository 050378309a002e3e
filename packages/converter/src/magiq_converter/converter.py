"""
Conversion orchestration for WebP output.

This module ties the pieces of a single conversion together:
1. Normalize the raw options
2. Serve from the content-addressed cache when possible
3. Sniff, decode, transform and encode through the codec
4. Store the result in the cache (best effort)
"""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import Mapping
from typing import Any, ContextManager

from magiq_shared.errors import UnsupportedFormat

from .cache import ConversionCache, build_cache, derive_key
from .codec import SUPPORTED_FORMATS, ImageCodec, PillowCodec
from .config import ConverterConfig
from .options import ConversionOptions, normalize_options

logger = logging.getLogger(__name__)


class Converter:
    """
    Converts JPEG/PNG bytes to WebP.

    One instance is shared by every request thread or batch worker. It holds
    no per-conversion state; the only shared pieces are the cache directory
    and the codec slots that cap how many decode/encode steps run at once.
    """

    def __init__(
        self,
        config: ConverterConfig,
        codec: ImageCodec | None = None,
        cache: ConversionCache | None = None,
    ):
        self._config = config
        self._codec = codec or PillowCodec()
        self._cache = cache if cache is not None else build_cache(config)
        self._codec_slots: threading.BoundedSemaphore | None = (
            threading.BoundedSemaphore(config.concurrency) if config.concurrency > 0 else None
        )

    @property
    def config(self) -> ConverterConfig:
        return self._config

    @property
    def cache(self) -> ConversionCache:
        return self._cache

    def options(self, raw: Mapping[str, Any] | None) -> ConversionOptions:
        return normalize_options(raw, self._config)

    def convert(self, data: bytes, raw_options: Mapping[str, Any] | None = None) -> bytes:
        """
        Convert source bytes to WebP.

        Raises:
            UnsupportedFormat: bytes are not JPEG or PNG
            InvalidImage: bytes claim a supported format but fail to decode
        """
        options = self.options(raw_options)

        key: str | None = None
        if self._cache.enabled:
            key = derive_key(data, options)
            cached = self._cache.lookup(key)
            if cached is not None:
                return cached

        started = time.perf_counter()
        with self._codec_slot():
            output = self._encode(data, options)
        logger.debug(
            "Encoded %d -> %d bytes in %.1fms (%s)",
            len(data), len(output), (time.perf_counter() - started) * 1000, options.as_dict(),
        )

        if key is not None:
            self._cache.store(key, output)
        return output

    def _encode(self, data: bytes, options: ConversionOptions) -> bytes:
        fmt = self._codec.sniff(data)
        if fmt not in SUPPORTED_FORMATS:
            raise UnsupportedFormat()

        decoded = self._codec.decode(data)
        decoded = self._codec.transform(decoded, options)
        return self._codec.encode(decoded, options)

    def _codec_slot(self) -> ContextManager[Any]:
        if self._codec_slots is None:
            return contextlib.nullcontext()
        return self._codec_slots

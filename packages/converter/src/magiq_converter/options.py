"""
Conversion options and their normalization.

Callers hand over whatever they parsed from a query string or the command
line; normalize_options() turns it into a fully populated ConversionOptions.
It never rejects anything: malformed or missing values fall back to the
configured defaults.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from magiq_shared.env import TRUE_TOKENS

from .config import ConverterConfig

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class FitMode(str, Enum):
    """How an image is fitted into the requested width/height box."""
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"
    INSIDE = "inside"
    OUTSIDE = "outside"

    @classmethod
    def parse(cls, value: Any) -> FitMode:
        if isinstance(value, FitMode):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.COVER


@dataclass(frozen=True)
class ConversionOptions:
    """Normalized options for one conversion."""
    quality: int
    lossless: bool
    width: int | None
    height: int | None
    fit: FitMode
    strip_metadata: bool
    effort: int

    @property
    def resize_requested(self) -> bool:
        return self.width is not None or self.height is not None

    def as_dict(self) -> dict[str, Any]:
        return {
            "quality": self.quality,
            "lossless": self.lossless,
            "width": self.width,
            "height": self.height,
            "fit": self.fit.value,
            "strip_metadata": self.strip_metadata,
            "effort": self.effort,
        }


def _clamp(value: int, low: int, high: int) -> int:
    return min(high, max(low, value))


def _to_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        # leading digits win, so "85.5" and "70px" read as 85 and 70
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else None
    return None


def _to_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        # a bare ?lossless or --lossless counts as set
        return normalized == "" or normalized in TRUE_TOKENS
    return bool(value)


def _to_dimension(value: Any) -> int | None:
    number = _to_int(value)
    if number is None or number <= 0:
        return None
    return number


def normalize_options(raw: Mapping[str, Any] | None, config: ConverterConfig) -> ConversionOptions:
    """Fill defaults and validate every field of a raw options mapping."""
    raw = raw or {}

    quality = _to_int(raw.get("quality"))
    if quality is None:
        quality = config.default_quality

    strip = raw.get("strip_metadata")
    if strip is None:
        strip = raw.get("stripMetadata")

    return ConversionOptions(
        quality=_clamp(quality, 1, 100),
        lossless=_to_bool(raw.get("lossless"), config.default_lossless),
        width=_to_dimension(raw.get("width")),
        height=_to_dimension(raw.get("height")),
        fit=FitMode.parse(raw.get("fit")),
        strip_metadata=_to_bool(strip, config.strip_metadata),
        effort=_clamp(config.webp_effort, 0, 6),
    )

"""
Image-magiq converter - JPEG/PNG to WebP conversion core

This package is used by both the HTTP backend and the batch CLIs. It:
1. Normalizes raw conversion options against configured defaults
2. Serves repeated conversions from a content-addressed file cache
3. Decodes, transforms and encodes through Pillow
4. Runs many file conversions on a bounded thread pool

Usage:
    from magiq_converter import Converter, ConverterConfig
    converter = Converter(ConverterConfig.load())
    webp = converter.convert(png_bytes, {"quality": "70"})
"""

from .batch import (
    BatchItem,
    BatchSummary,
    Outcome,
    convert_file,
    describe_error,
    run_batch,
    summarize,
)
from .cache import ConversionCache, FileCache, NullCache, build_cache, derive_key
from .codec import SUPPORTED_FORMATS, DecodedImage, ImageCodec, PillowCodec
from .config import ConverterConfig
from .converter import Converter
from .options import ConversionOptions, FitMode, normalize_options

__all__ = [
    "Converter",
    "ConverterConfig",
    "ConversionOptions",
    "FitMode",
    "normalize_options",
    "derive_key",
    "ConversionCache",
    "FileCache",
    "NullCache",
    "build_cache",
    "SUPPORTED_FORMATS",
    "DecodedImage",
    "ImageCodec",
    "PillowCodec",
    "BatchItem",
    "BatchSummary",
    "Outcome",
    "run_batch",
    "summarize",
    "convert_file",
    "describe_error",
]

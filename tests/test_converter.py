from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from conftest import open_webp
from magiq_converter import Converter, ConverterConfig, FileCache, PillowCodec
from magiq_shared.errors import InvalidImage, UnsupportedFormat


class RecordingCodec(PillowCodec):
    """PillowCodec that counts calls and tracks how many encodes overlap."""

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.calls: dict[str, int] = {"sniff": 0, "decode": 0, "transform": 0, "encode": 0}
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def sniff(self, data):
        self.calls["sniff"] += 1
        return super().sniff(data)

    def decode(self, data):
        self.calls["decode"] += 1
        return super().decode(data)

    def transform(self, decoded, options):
        self.calls["transform"] += 1
        return super().transform(decoded, options)

    def encode(self, decoded, options):
        with self._lock:
            self.calls["encode"] += 1
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(self.delay)
            return super().encode(decoded, options)
        finally:
            with self._lock:
                self.active -= 1


def test_png_and_jpeg_become_webp(converter, png_bytes, jpeg_bytes) -> None:
    for data in (png_bytes, jpeg_bytes):
        out = open_webp(converter.convert(data))
        assert out.format == "WEBP"


def test_multi_picture_jpeg_becomes_webp(converter, mpo_bytes) -> None:
    out = open_webp(converter.convert(mpo_bytes))
    assert out.format == "WEBP"
    assert out.size == (64, 48)


def test_options_reach_the_codec(converter, png_bytes) -> None:
    out = open_webp(converter.convert(png_bytes, {"width": "16", "fit": "inside"}))
    assert out.size == (16, 12)


def test_unsupported_format_rejected_before_transform(gif_bytes) -> None:
    codec = RecordingCodec()
    converter = Converter(ConverterConfig(), codec=codec)
    with pytest.raises(UnsupportedFormat):
        converter.convert(gif_bytes)
    assert codec.calls["decode"] == 0
    assert codec.calls["transform"] == 0


def test_garbage_bytes_are_unsupported(converter) -> None:
    with pytest.raises(UnsupportedFormat):
        converter.convert(b"\x00" * 64)


def test_corrupt_png_is_invalid(converter, truncated_png) -> None:
    with pytest.raises(InvalidImage):
        converter.convert(truncated_png)


def test_cache_hit_skips_codec(tmp_path: Path, png_bytes) -> None:
    codec = RecordingCodec()
    config = ConverterConfig(cache_dir=tmp_path)
    converter = Converter(config, codec=codec)

    first = converter.convert(png_bytes, {"quality": "70"})
    second = converter.convert(png_bytes, {"quality": "70"})

    assert first == second
    assert codec.calls["sniff"] == 1
    assert codec.calls["encode"] == 1
    assert len(list(tmp_path.glob("*.webp"))) == 1


def test_changed_option_misses_cache(tmp_path: Path, png_bytes) -> None:
    codec = RecordingCodec()
    converter = Converter(ConverterConfig(cache_dir=tmp_path), codec=codec)
    converter.convert(png_bytes, {"quality": "70"})
    converter.convert(png_bytes, {"quality": "71"})
    assert codec.calls["encode"] == 2


def test_cache_write_failure_returns_same_bytes(tmp_path: Path, png_bytes) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    broken = Converter(ConverterConfig(), cache=FileCache(blocker / "cache", 60))
    plain = Converter(ConverterConfig())
    assert broken.convert(png_bytes) == plain.convert(png_bytes)


def test_codec_concurrency_is_bounded(png_bytes) -> None:
    codec = RecordingCodec(delay=0.05)
    converter = Converter(ConverterConfig(concurrency=2), codec=codec)

    threads = [threading.Thread(target=converter.convert, args=(png_bytes,)) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert codec.calls["encode"] == 6
    assert codec.peak <= 2


def test_zero_concurrency_is_unbounded(png_bytes) -> None:
    converter = Converter(ConverterConfig(concurrency=0))
    assert converter._codec_slots is None
    assert open_webp(converter.convert(png_bytes)).format == "WEBP"

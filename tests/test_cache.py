from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from pathlib import Path

import pytest

from magiq_converter import (
    ConverterConfig,
    FileCache,
    FitMode,
    NullCache,
    build_cache,
    derive_key,
    normalize_options,
)


@pytest.fixture
def options():
    return normalize_options({"width": "32"}, ConverterConfig())


def test_key_is_deterministic(options) -> None:
    assert derive_key(b"abc", options) == derive_key(b"abc", replace(options))
    assert len(derive_key(b"abc", options)) == 64


def test_key_changes_with_source_bytes(options) -> None:
    assert derive_key(b"abc", options) != derive_key(b"abd", options)


@pytest.mark.parametrize(
    "change",
    [
        {"quality": 81},
        {"lossless": True},
        {"width": 33},
        {"height": 10},
        {"fit": FitMode.CONTAIN},
        {"strip_metadata": False},
        {"effort": 5},
    ],
)
def test_key_changes_with_every_option(options, change) -> None:
    assert derive_key(b"abc", options) != derive_key(b"abc", replace(options, **change))


def test_store_then_lookup(tmp_path: Path) -> None:
    cache = FileCache(tmp_path / "cache", ttl_seconds=60)
    cache.store("k1", b"webp-bytes")
    assert cache.lookup("k1") == b"webp-bytes"
    assert cache.lookup("missing") is None


def test_store_leaves_no_temp_files(tmp_path: Path) -> None:
    cache = FileCache(tmp_path, ttl_seconds=60)
    cache.store("k1", b"one")
    cache.store("k1", b"two")
    assert sorted(p.name for p in tmp_path.iterdir()) == ["k1.webp"]
    assert cache.lookup("k1") == b"two"


def test_concurrent_lookup_sees_whole_entries_only(tmp_path: Path) -> None:
    first = b"a" * (1024 * 1024)
    second = b"b" * (1024 * 1024)
    cache = FileCache(tmp_path, ttl_seconds=60)
    done = threading.Event()
    seen: list[bytes] = []

    def write() -> None:
        try:
            for _ in range(30):
                cache.store("k1", first)
                cache.store("k1", second)
        finally:
            done.set()

    def read() -> None:
        while not done.is_set():
            data = cache.lookup("k1")
            if data is not None:
                seen.append(data)

    writer = threading.Thread(target=write)
    reader = threading.Thread(target=read)
    reader.start()
    writer.start()
    writer.join()
    reader.join()

    assert seen
    assert all(data == first or data == second for data in seen)
    assert sorted(p.name for p in tmp_path.iterdir()) == ["k1.webp"]


def test_stale_entry_is_a_miss_but_stays_on_disk(tmp_path: Path) -> None:
    now = [time.time()]
    cache = FileCache(tmp_path, ttl_seconds=60, clock=lambda: now[0])
    cache.store("k1", b"data")
    assert cache.lookup("k1") == b"data"

    now[0] += 120
    assert cache.lookup("k1") is None
    assert cache.path_for("k1").exists()


def test_zero_ttl_never_goes_stale(tmp_path: Path) -> None:
    cache = FileCache(tmp_path, ttl_seconds=0, clock=lambda: time.time() + 10**9)
    cache.store("k1", b"data")
    assert cache.lookup("k1") == b"data"


def test_write_failure_is_swallowed(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    cache = FileCache(blocker / "cache", ttl_seconds=60)

    with caplog.at_level(logging.WARNING):
        cache.store("k1", b"data")

    assert cache.lookup("k1") is None
    assert "Cache write failed" in caplog.text


def test_null_cache() -> None:
    cache = NullCache()
    cache.store("k1", b"data")
    assert cache.enabled is False
    assert cache.lookup("k1") is None


def test_build_cache_follows_config(tmp_path: Path) -> None:
    assert ConverterConfig().cache_enabled is False
    assert isinstance(build_cache(ConverterConfig()), NullCache)
    assert ConverterConfig(cache_dir=tmp_path).cache_enabled is True
    cache = build_cache(ConverterConfig(cache_dir=tmp_path, cache_ttl_sec=5))
    assert isinstance(cache, FileCache)
    assert cache.ttl_seconds == 5

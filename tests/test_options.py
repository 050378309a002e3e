from __future__ import annotations

from pathlib import Path

import pytest

from magiq_converter import ConverterConfig, FitMode, normalize_options


def test_defaults_fill_every_field() -> None:
    options = normalize_options(None, ConverterConfig())
    assert options.quality == 80
    assert options.lossless is False
    assert options.width is None
    assert options.height is None
    assert options.fit is FitMode.COVER
    assert options.strip_metadata is True
    assert options.effort == 4
    assert options.resize_requested is False


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (0, 1), ("0", 1), (150, 100), ("150", 100), ("-20", 1), ("55", 55),
        ("85.5", 85), (" 70px", 70), ("abc", 80), ("", 80), (True, 80),
    ],
)
def test_quality_is_clamped(raw, expected) -> None:
    assert normalize_options({"quality": raw}, ConverterConfig()).quality == expected


def test_quality_default_comes_from_config() -> None:
    config = ConverterConfig(default_quality=42)
    assert normalize_options({}, config).quality == 42


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("", True), ("1", True), ("yes", True), ("ON", True), ("no", False), ("nope", False), (True, True)],
)
def test_lossless_coercion(raw, expected) -> None:
    assert normalize_options({"lossless": raw}, ConverterConfig()).lossless is expected


def test_lossless_absent_uses_default() -> None:
    config = ConverterConfig(default_lossless=True)
    assert normalize_options({}, config).lossless is True


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("100", 100), (64, 64), ("12.7", 12), ("0", None), ("-5", None), ("wide", None)],
)
def test_dimensions_must_be_positive(raw, expected) -> None:
    options = normalize_options({"width": raw, "height": raw}, ConverterConfig())
    assert options.width == expected
    assert options.height == expected


def test_fit_is_case_insensitive_and_falls_back_to_cover() -> None:
    assert normalize_options({"fit": "CONTAIN"}, ConverterConfig()).fit is FitMode.CONTAIN
    assert normalize_options({"fit": "inside"}, ConverterConfig()).fit is FitMode.INSIDE
    assert normalize_options({"fit": "stretch"}, ConverterConfig()).fit is FitMode.COVER


def test_strip_metadata_accepts_both_spellings() -> None:
    config = ConverterConfig(strip_metadata=True)
    assert normalize_options({"stripMetadata": "false"}, config).strip_metadata is False
    assert normalize_options({"strip_metadata": "0"}, config).strip_metadata is False
    assert normalize_options({}, config).strip_metadata is True


def test_effort_comes_from_config_only() -> None:
    config = ConverterConfig(webp_effort=6)
    options = normalize_options({"effort": "1"}, config)
    assert options.effort == 6


def test_normalize_is_deterministic() -> None:
    raw = {"quality": "70", "width": "10", "fit": "fill"}
    config = ConverterConfig()
    assert normalize_options(raw, config) == normalize_options(dict(raw), config)


def test_config_load_reads_environment(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("DEFAULT_QUALITY", "500")
    clean_env.setenv("DEFAULT_LOSSLESS", "yes")
    clean_env.setenv("WEBP_EFFORT", "9")
    clean_env.setenv("STRIP_METADATA", "off")
    clean_env.setenv("CONCURRENCY", "-3")
    clean_env.setenv("CACHE_DIR", str(tmp_path))
    clean_env.setenv("CACHE_TTL_SEC", "oops")

    config = ConverterConfig.load()
    assert config.default_quality == 100
    assert config.default_lossless is True
    assert config.webp_effort == 6
    assert config.strip_metadata is False
    assert config.concurrency == 0
    assert config.cache_dir == tmp_path
    assert config.cache_ttl_sec == 86_400
    assert config.cache_enabled


def test_config_load_defaults(clean_env: pytest.MonkeyPatch) -> None:
    config = ConverterConfig.load()
    assert config == ConverterConfig()
    assert not config.cache_enabled

from __future__ import annotations

import os
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image

from magiq_converter import Converter, ConverterConfig


def make_image_bytes(
    fmt: str,
    size: tuple[int, int] = (64, 48),
    mode: str = "RGB",
    color: tuple[int, ...] = (200, 30, 30),
    **save_kwargs,
) -> bytes:
    img = Image.new(mode, size, color)
    buf = BytesIO()
    img.save(buf, format=fmt, **save_kwargs)
    return buf.getvalue()


def open_webp(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def mpo_bytes() -> bytes:
    # two-frame multi-picture JPEG, the layout many camera photos use
    first = Image.new("RGB", (64, 48), (200, 30, 30))
    second = Image.new("RGB", (64, 48), (30, 30, 200))
    buf = BytesIO()
    first.save(buf, format="MPO", save_all=True, append_images=[second])
    return buf.getvalue()


@pytest.fixture
def gif_bytes() -> bytes:
    return make_image_bytes("GIF", mode="P", color=1)


@pytest.fixture
def truncated_png() -> bytes:
    # noisy pixels keep the IDAT large, so the cut lands inside pixel data
    img = Image.frombytes("RGB", (64, 48), os.urandom(64 * 48 * 3))
    buf = BytesIO()
    img.save(buf, format="PNG")
    data = buf.getvalue()
    return data[: len(data) * 2 // 3]


@pytest.fixture
def config() -> ConverterConfig:
    return ConverterConfig()


@pytest.fixture
def converter(config: ConverterConfig) -> Converter:
    return Converter(config)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in (
        "DEFAULT_QUALITY", "DEFAULT_LOSSLESS", "WEBP_EFFORT", "STRIP_METADATA",
        "CONCURRENCY", "CACHE_DIR", "CACHE_TTL_SEC", "HOST", "PORT", "LOG_LEVEL",
        "API_KEYS", "API_KEY", "MAX_UPLOAD_MB", "ALLOW_URL_FETCH", "REQUEST_TIMEOUT_MS",
        "RATE_LIMIT_WINDOW_MS", "RATE_LIMIT_MAX", "CORS_ORIGINS", "TRUST_PROXY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def write_images(root: Path, names: list[str], data: bytes) -> list[Path]:
    paths = []
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        paths.append(path)
    return paths

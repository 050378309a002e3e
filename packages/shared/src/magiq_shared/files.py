"""
File handling utilities for the backend and the batch tools.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

ALLOWED_IMG_EXTS: frozenset[str] = frozenset({".png", ".jpg", ".jpeg"})
DEFAULT_BASE_NAME = "image"


def find_images(root: Path) -> list[Path]:
    """
    Recursively collect JPEG/PNG candidates under root.

    Only the extension is looked at here; the converter sniffs the actual
    bytes before doing any work.
    """
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            if path.suffix.lower() not in ALLOWED_IMG_EXTS:
                continue
            if not path.is_file():
                continue
            found.append(path)
    logger.debug("Found %d images under %s", len(found), root)
    return found


def webp_name(path: Path) -> str:
    return f"{path.stem}.webp"


def safe_base_name(filename: str | None, default: str = DEFAULT_BASE_NAME) -> str:
    """Stem of an untrusted filename, safe to put in a Content-Disposition header."""
    if not filename:
        return default
    stem = Path(filename.replace("\\", "/")).stem
    return secure_filename(stem) or default


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write data next to path and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.parent / f".{path.name}.{uuid.uuid4().hex}.tmp"
    try:
        with open(tmp_path, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise

"""
Bounded worker pool for converting many files.

A fixed number of threads claim items from a shared index until none are
left. Every item ends up with exactly one outcome; an exception while
processing one file is recorded on that item and never stops the others.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable

from magiq_shared.errors import MagiqError
from magiq_shared.files import atomic_write_bytes

from .converter import Converter

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    CONVERTED = "converted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class BatchItem:
    """Result for one discovered source file."""
    source: Path
    destination: Path | None
    outcome: Outcome
    reason: str | None = None

    @classmethod
    def failed(cls, source: Path, reason: str, destination: Path | None = None) -> BatchItem:
        return cls(source=source, destination=destination, outcome=Outcome.FAILED, reason=reason)


@dataclass(frozen=True)
class BatchSummary:
    total: int = 0
    converted: int = 0
    skipped: int = 0
    failed: int = 0


ConvertOne = Callable[[Path], BatchItem]
ItemCallback = Callable[[BatchItem], None]


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, MagiqError):
        return f"{exc.code}: {exc.message}"
    return f"{type(exc).__name__}: {exc}"


def run_batch(
    sources: Sequence[Path],
    concurrency: int,
    convert_one: ConvertOne,
    on_item: ItemCallback | None = None,
) -> list[BatchItem]:
    """
    Run convert_one over every source with at most `concurrency` workers.

    Returns one BatchItem per source, in input order. on_item is called from
    the worker thread as each item finishes.
    """
    sources = list(sources)
    results: list[BatchItem | None] = [None] * len(sources)
    if not sources:
        return []

    lock = threading.Lock()
    next_index = 0

    def claim() -> int | None:
        nonlocal next_index
        with lock:
            if next_index >= len(sources):
                return None
            index = next_index
            next_index += 1
            return index

    def worker() -> None:
        while True:
            index = claim()
            if index is None:
                return
            source = sources[index]
            try:
                item = convert_one(source)
            except Exception as e:
                logger.debug("Item %s failed", source, exc_info=True)
                item = BatchItem.failed(source, describe_error(e))
            results[index] = item
            if on_item is not None:
                try:
                    on_item(item)
                except Exception:
                    logger.exception("Progress callback failed for %s", source)

    worker_count = min(max(1, concurrency), len(sources))
    threads = [
        threading.Thread(target=worker, name=f"batch-worker-{n}", daemon=True)
        for n in range(worker_count)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    return [item for item in results if item is not None]


def summarize(items: Sequence[BatchItem]) -> BatchSummary:
    counts = {outcome: 0 for outcome in Outcome}
    for item in items:
        counts[item.outcome] += 1
    return BatchSummary(
        total=len(items),
        converted=counts[Outcome.CONVERTED],
        skipped=counts[Outcome.SKIPPED],
        failed=counts[Outcome.FAILED],
    )


def convert_file(
    converter: Converter,
    source: Path,
    destination: Path,
    raw_options: Mapping[str, Any] | None,
    force: bool = False,
) -> BatchItem:
    """Convert one file on disk, leaving an existing destination alone unless forced."""
    if not force and destination.exists():
        return BatchItem(source=source, destination=destination, outcome=Outcome.SKIPPED)

    data = source.read_bytes()
    try:
        output = converter.convert(data, raw_options)
    except MagiqError as e:
        return BatchItem.failed(source, describe_error(e), destination)

    atomic_write_bytes(destination, output)
    return BatchItem(source=source, destination=destination, outcome=Outcome.CONVERTED)

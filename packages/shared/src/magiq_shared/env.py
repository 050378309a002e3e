"""Environment variable parsing shared by the config loaders."""

from __future__ import annotations

import os

TRUE_TOKENS = frozenset({"1", "true", "t", "yes", "y", "on"})
FALSE_TOKENS = frozenset({"0", "false", "f", "no", "n", "off"})


def parse_bool(value: str | None, default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    normalized = value.strip().lower()
    if normalized in TRUE_TOKENS:
        return True
    if normalized in FALSE_TOKENS:
        return False
    return default


def parse_int(value: str | None, default: int) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip(), 10)
    except ValueError:
        return default


def parse_list(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def env_bool(name: str, default: bool = False) -> bool:
    return parse_bool(os.getenv(name), default)


def env_int(name: str, default: int, minimum: int | None = None, maximum: int | None = None) -> int:
    value = parse_int(os.getenv(name), default)
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


def env_list(*names: str) -> tuple[str, ...]:
    """Comma separated list from the first of names that is set."""
    for name in names:
        raw = os.getenv(name)
        if raw:
            return parse_list(raw)
    return ()

"""
Remote image download with a size cap and an overall deadline.

A download is aborted as soon as either limit is crossed, so a slow or
oversized remote resource cannot pin a request thread or grow memory
without bound.
"""

from __future__ import annotations

import logging
import time
from urllib.parse import urlsplit

import requests
from urllib3.exceptions import ReadTimeoutError

from .errors import FetchFailed, FetchTimeout, InvalidUrl, InvalidUrlScheme, PayloadTooLarge

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
USER_AGENT = "image-magiq/0.1"


def _is_read_timeout(exc: requests.RequestException) -> bool:
    """True when requests wrapped a urllib3 read timeout as a ConnectionError."""
    return any(isinstance(arg, ReadTimeoutError) for arg in exc.args) or isinstance(
        exc.__context__, ReadTimeoutError
    )


def ensure_http_url(url: str) -> str:
    """Validate url and return it unchanged."""
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise InvalidUrl() from e
    if not parts.scheme or not parts.netloc:
        raise InvalidUrl()
    if parts.scheme.lower() not in ("http", "https"):
        raise InvalidUrlScheme()
    return url


def fetch_url(
    url: str,
    max_bytes: int,
    timeout: float,
    session: requests.Session | None = None,
) -> bytes:
    """
    Download url into memory.

    Raises:
        InvalidUrl, InvalidUrlScheme: url is not an absolute http(s) URL
        PayloadTooLarge: declared or streamed size exceeds max_bytes
        FetchTimeout: the download did not finish within timeout seconds
        FetchFailed: non-success status or transport error
    """
    ensure_http_url(url)
    http = session or requests
    deadline = time.monotonic() + timeout

    try:
        resp = http.get(
            url,
            stream=True,
            timeout=timeout,
            allow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
    except requests.Timeout as e:
        raise FetchTimeout() from e
    except requests.RequestException as e:
        logger.warning("Fetch of %s failed: %s", url, e)
        raise FetchFailed() from e

    with resp:
        if not resp.ok:
            raise FetchFailed(f"Failed to fetch URL (status {resp.status_code})")

        declared = resp.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise PayloadTooLarge("Remote file too large")

        chunks: list[bytes] = []
        total = 0
        try:
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if not chunk:
                    continue
                total += len(chunk)
                if total > max_bytes:
                    raise PayloadTooLarge("Remote file too large")
                if time.monotonic() > deadline:
                    raise FetchTimeout()
                chunks.append(chunk)
        except requests.Timeout as e:
            raise FetchTimeout() from e
        except requests.ConnectionError as e:
            if _is_read_timeout(e) or time.monotonic() > deadline:
                raise FetchTimeout() from e
            logger.warning("Fetch of %s aborted: %s", url, e)
            raise FetchFailed() from e
        except requests.RequestException as e:
            logger.warning("Fetch of %s aborted: %s", url, e)
            raise FetchFailed() from e

    logger.debug("Fetched %d bytes from %s", total, url)
    return b"".join(chunks)

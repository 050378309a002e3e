"""
Shared error taxonomy, remote fetch and file helpers for image-magiq

The package is a dependency of the converter, the backend and the CLIs:
- errors carry the stable reason codes returned to callers
- fetch downloads remote sources under a size cap and a deadline
- files walks source trees and writes outputs atomically
"""

from .errors import (
    AdmissionError,
    AuthError,
    CredentialsNotConfigured,
    FetchError,
    FetchFailed,
    FetchTimeout,
    InputValidationError,
    InternalError,
    InvalidCredential,
    InvalidImage,
    InvalidUrl,
    InvalidUrlScheme,
    MagiqError,
    MissingCredential,
    MissingInput,
    PayloadTooLarge,
    RateLimited,
    ResourceLimitError,
    UnsupportedFormat,
    UrlFetchDisabled,
)
from .fetch import ensure_http_url, fetch_url
from .files import (
    ALLOWED_IMG_EXTS,
    atomic_write_bytes,
    find_images,
    safe_base_name,
    webp_name,
)

__all__ = [
    # Errors
    "MagiqError",
    "InputValidationError",
    "UnsupportedFormat",
    "InvalidImage",
    "MissingInput",
    "InvalidUrl",
    "InvalidUrlScheme",
    "UrlFetchDisabled",
    "ResourceLimitError",
    "PayloadTooLarge",
    "AuthError",
    "MissingCredential",
    "CredentialsNotConfigured",
    "InvalidCredential",
    "AdmissionError",
    "RateLimited",
    "FetchError",
    "FetchFailed",
    "FetchTimeout",
    "InternalError",
    # Fetch
    "ensure_http_url",
    "fetch_url",
    # Files
    "ALLOWED_IMG_EXTS",
    "find_images",
    "webp_name",
    "safe_base_name",
    "atomic_write_bytes",
]

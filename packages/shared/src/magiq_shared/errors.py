"""
Error taxonomy shared by the converter, the HTTP backend and the CLIs.

Every caller-facing failure is one concrete subclass of MagiqError. The
category classes (InputValidationError, ResourceLimitError, ...) are never
raised directly; they exist so the boundaries can match whole families.

    MagiqError
      InputValidationError   unsupported_format, invalid_image, missing_input,
                             invalid_url, invalid_url_scheme, url_fetch_disabled
      ResourceLimitError     payload_too_large
      AuthError              missing_api_key, api_not_configured, invalid_api_key
      AdmissionError         rate_limit_exceeded
      FetchError             fetch_error, fetch_timeout
      InternalError          internal_error
"""

from __future__ import annotations

from typing import Any


class MagiqError(Exception):
    """Base for all errors that carry a stable reason code."""

    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class InputValidationError(MagiqError):
    """The request or the source bytes are not acceptable."""
    status_code = 400


class UnsupportedFormat(InputValidationError):
    code = "unsupported_format"
    status_code = 415
    default_message = "Unsupported image format. Only JPEG and PNG are allowed."


class InvalidImage(InputValidationError):
    code = "invalid_image"
    status_code = 422
    default_message = "Image data could not be decoded."


class MissingInput(InputValidationError):
    code = "missing_input"
    default_message = 'Provide a multipart file (field "file") or url query parameter'


class InvalidUrl(InputValidationError):
    code = "invalid_url"
    default_message = "Invalid URL"


class InvalidUrlScheme(InputValidationError):
    code = "invalid_url_scheme"
    default_message = "Only http/https URLs are allowed"


class UrlFetchDisabled(InputValidationError):
    code = "url_fetch_disabled"
    default_message = "URL fetching is disabled on this server"


class ResourceLimitError(MagiqError):
    """A size limit was exceeded, declared or discovered mid-stream."""
    status_code = 413


class PayloadTooLarge(ResourceLimitError):
    code = "payload_too_large"
    default_message = "Payload too large"


class AuthError(MagiqError):
    """The caller could not be authenticated."""
    status_code = 401


class MissingCredential(AuthError):
    code = "missing_api_key"
    default_message = "Provide X-API-Key header or Authorization: Bearer"


class CredentialsNotConfigured(AuthError):
    code = "api_not_configured"
    default_message = "Server has no API_KEYS configured"


class InvalidCredential(AuthError):
    code = "invalid_api_key"
    default_message = "API key not authorized"


class AdmissionError(MagiqError):
    """The request was refused before any work was attempted."""
    status_code = 429


class RateLimited(AdmissionError):
    code = "rate_limit_exceeded"
    default_message = "Too many requests, please try again later."

    def __init__(self, message: str | None = None, retry_after: int = 0):
        self.retry_after = retry_after
        super().__init__(message)


class FetchError(MagiqError):
    """A remote source could not be retrieved."""
    status_code = 502


class FetchFailed(FetchError):
    code = "fetch_error"
    default_message = "Failed to fetch URL"


class FetchTimeout(FetchError):
    code = "fetch_timeout"
    status_code = 504
    default_message = "Timed out fetching URL"


class InternalError(MagiqError):
    code = "internal_error"
    status_code = 500

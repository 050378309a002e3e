"""Conversion endpoint."""

from __future__ import annotations

import logging
import time
from posixpath import basename
from urllib.parse import urlsplit

from flask import Blueprint, Response, current_app, g, request

from magiq_shared.errors import MissingInput, UrlFetchDisabled
from magiq_shared.files import safe_base_name

from ..gate import authenticate, enforce_rate_limit, extract_credential

logger = logging.getLogger(__name__)

convert_bp = Blueprint("convert", __name__)

# query parameters forwarded to the options normalizer
OPTION_PARAMS = ("quality", "lossless", "width", "height", "fit", "stripMetadata", "strip_metadata")


def client_key() -> str:
    return request.remote_addr or "unknown"


@convert_bp.before_request
def gate():
    """Rate limit, then authenticate, before the body is parsed."""
    limiter = current_app.config["rate_limiter"]
    key = client_key()
    state = limiter.hit(key)
    g.rate_limit = state
    enforce_rate_limit(state, key)
    authenticate(extract_credential(request.headers), current_app.config["api_keys"])


@convert_bp.after_request
def rate_limit_headers(response: Response) -> Response:
    state = g.get("rate_limit")
    if state is not None:
        response.headers.update(state.headers())
    return response


def _base_name_from_url(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        return safe_base_name(None)
    return safe_base_name(basename(path))


@convert_bp.post("/convert")
def convert():
    """Convert an uploaded file or a remote URL to WebP."""
    started = time.perf_counter()
    converter = current_app.config["converter"]

    upload = request.files.get("file")
    url = request.args.get("url")

    if upload is not None:
        data = upload.read()
        base_name = safe_base_name(upload.filename)
        source_kind = "upload"
    elif url:
        if not current_app.config["allow_url_fetch"]:
            raise UrlFetchDisabled()
        fetcher = current_app.config["fetcher"]
        data = fetcher(url)
        base_name = _base_name_from_url(url)
        source_kind = "url"
    else:
        raise MissingInput()

    raw_options = {
        name: request.args[name] for name in OPTION_PARAMS if name in request.args
    }
    output = converter.convert(data, raw_options)

    response = Response(output, status=200, mimetype="image/webp")
    response.headers["Content-Disposition"] = f'attachment; filename="{base_name}.webp"'
    response.headers["Cache-Control"] = "no-store"
    response.headers["X-Image-Input-Bytes"] = str(len(data))
    response.headers["X-Image-Output-Bytes"] = str(len(output))

    logger.info(
        "converted_to_webp took_ms=%d input_bytes=%d output_bytes=%d src=%s request_id=%s",
        (time.perf_counter() - started) * 1000, len(data), len(output), source_kind, g.request_id,
    )
    return response

"""Flask application factory for the image-magiq backend."""

from __future__ import annotations

import functools
import logging
import sys
import uuid
from typing import Callable

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from magiq_converter import Converter, ConverterConfig
from magiq_shared.errors import InternalError, MagiqError, RateLimited
from magiq_shared.fetch import fetch_url

from .config import BackendConfig
from .gate import FixedWindowRateLimiter
from .routes import convert_bp

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], bytes]

REQUEST_ID_HEADER = "X-Request-Id"
EXPOSED_HEADERS = [
    "X-Image-Input-Bytes",
    "X-Image-Output-Bytes",
    REQUEST_ID_HEADER,
    "RateLimit-Limit",
    "RateLimit-Remaining",
    "RateLimit-Reset",
    "Retry-After",
]

HTTP_ERROR_CODES = {
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
}


def _error_response(code: str, message: str, status: int) -> Response:
    response = jsonify({"error": code, "message": message})
    response.status_code = status
    return response


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(MagiqError)
    def handle_magiq_error(exc: MagiqError):
        if exc.is_client_error:
            logger.warning("Request failed with %s: %s", exc.code, exc.message)
        else:
            logger.error("Request failed with %s: %s", exc.code, exc.message, exc_info=exc)
        response = _error_response(exc.code, exc.message, exc.status_code)
        if isinstance(exc, RateLimited):
            response.headers["Retry-After"] = str(exc.retry_after)
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        status = exc.code or 500
        code = HTTP_ERROR_CODES.get(status, "http_error")
        logger.warning("HTTP %d on %s %s", status, request.method, request.path)
        return _error_response(code, exc.description or exc.name, status)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        err = InternalError()
        return _error_response(err.code, err.message, err.status_code)


def create_app(
    config: BackendConfig | None = None,
    converter: Converter | None = None,
    fetcher: Fetcher | None = None,
) -> Flask:
    """Create and configure the Flask application."""
    if config is None:
        config = BackendConfig.load()

    logging.basicConfig(
        level=config.logging_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    if converter is None:
        converter = Converter(ConverterConfig.load())
    if fetcher is None:
        fetcher = functools.partial(
            fetch_url, max_bytes=config.max_upload_bytes, timeout=config.request_timeout,
        )

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.max_upload_bytes
    CORS(app, origins=list(config.cors_origins), expose_headers=EXPOSED_HEADERS)

    if config.trust_proxy:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    app.config["backend_config"] = config
    app.config["converter"] = converter
    app.config["fetcher"] = fetcher
    app.config["api_keys"] = config.api_keys
    app.config["allow_url_fetch"] = config.allow_url_fetch
    app.config["rate_limiter"] = FixedWindowRateLimiter(
        config.rate_limit_max, config.rate_limit_window,
    )

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

    @app.after_request
    def echo_request_id(response: Response) -> Response:
        request_id = g.get("request_id")
        if request_id:
            response.headers[REQUEST_ID_HEADER] = request_id
        return response

    register_error_handlers(app)
    app.register_blueprint(convert_bp)

    @app.get("/healthz")
    def healthz():
        return Response("ok", status=200, mimetype="text/plain")

    if not config.api_keys:
        logger.warning("No API_KEYS configured; every /convert request will be rejected")
    logger.info(
        "image-magiq backend initialized (cache=%s, url_fetch=%s)",
        converter.cache.enabled, config.allow_url_fetch,
    )
    return app


def main() -> None:
    """Entry point for running the threaded server."""
    config = BackendConfig.load()
    app = create_app(config)
    logger.info("image-magiq listening on %s:%d", config.host, config.port)
    app.run(host=config.host, port=config.port, threaded=True, debug=False, use_reloader=False)


if __name__ == "__main__":
    main()

"""
Image-magiq backend - Flask API for WebP conversion

This app is deployed as the public HTTP service. It:
1. Rate limits and authenticates callers by API key
2. Accepts an uploaded image or fetches one from a URL
3. Returns the WebP encoding, served from the shared cache when possible

Deployment:
    pip install image-magiq
    API_KEYS=secret magiq-server
"""

from .app import create_app
from .config import BackendConfig

__all__ = ["create_app", "BackendConfig"]

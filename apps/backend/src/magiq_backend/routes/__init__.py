"""Backend HTTP routes."""

from .convert import convert_bp

__all__ = ["convert_bp"]

"""
Image-magiq CLIs - batch WebP conversion from the command line

Two commands share the converter and the worker pool:
    convert-dir ./photos                 writes a.webp next to a.png
    batch-convert ./photos --limit 25    writes into ./photos-output
"""

from .cli import batch_convert, convert_dir

__all__ = ["convert_dir", "batch_convert"]

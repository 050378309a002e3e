"""
Pillow-backed image codec.

The converter talks to the codec through four calls:
1. sniff the format from the raw bytes
2. decode into a DecodedImage
3. transform (orientation, color space, optional resize)
4. encode to WebP
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from io import BytesIO
from typing import Protocol

from PIL import Image, ImageCms, ImageOps, UnidentifiedImageError

from magiq_shared.errors import InvalidImage, PayloadTooLarge

from .options import ConversionOptions, FitMode

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS: frozenset[str] = frozenset({"jpeg", "png"})
# Multi-picture JPEGs from phones and cameras are plain JPEG to a decoder.
FORMAT_ALIASES = {"mpo": "jpeg"}

EXIF_ORIENTATION = 0x0112
XMP_KEYS = ("xmp", "XML:com.adobe.xmp")

_SRGB_PROFILE = ImageCms.createProfile("sRGB")


@dataclass
class DecodedImage:
    """A decoded image plus the metadata we may carry into the output."""
    image: Image.Image
    format: str
    exif: bytes | None = None
    icc_profile: bytes | None = None
    xmp: bytes | None = None


class ImageCodec(Protocol):
    def sniff(self, data: bytes) -> str | None:  # pragma: no cover - interface
        ...

    def decode(self, data: bytes) -> DecodedImage:  # pragma: no cover - interface
        ...

    def transform(self, decoded: DecodedImage, options: ConversionOptions) -> DecodedImage:  # pragma: no cover - interface
        ...

    def encode(self, decoded: DecodedImage, options: ConversionOptions) -> bytes:  # pragma: no cover - interface
        ...


def _format_name(fmt: str | None) -> str:
    name = (fmt or "").lower()
    return FORMAT_ALIASES.get(name, name)


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )


def _target_box(src_w: int, src_h: int, width: int | None, height: int | None) -> tuple[int, int]:
    """Requested box, filling a missing side from the source aspect ratio."""
    if width and height:
        return width, height
    if width:
        return width, max(1, round(src_h * width / src_w))
    if height:
        return max(1, round(src_w * height / src_h)), height
    return src_w, src_h


class PillowCodec:
    """ImageCodec implementation on top of Pillow."""

    def sniff(self, data: bytes) -> str | None:
        """Format name read from the byte content, or None."""
        try:
            with Image.open(BytesIO(data)) as img:
                fmt = img.format
        except Image.DecompressionBombError as e:
            raise PayloadTooLarge(f"Image dimensions too large: {e}") from e
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
            return None
        return _format_name(fmt) or None

    def decode(self, data: bytes) -> DecodedImage:
        try:
            img = Image.open(BytesIO(data))
            img.load()
        except Image.DecompressionBombError as e:
            raise PayloadTooLarge(f"Image dimensions too large: {e}") from e
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            raise InvalidImage(f"Image data could not be decoded: {e}") from e

        xmp = next((img.info[k] for k in XMP_KEYS if img.info.get(k)), None)
        if isinstance(xmp, str):
            xmp = xmp.encode("utf-8")
        return DecodedImage(
            image=img,
            format=_format_name(img.format),
            exif=img.info.get("exif") or None,
            icc_profile=img.info.get("icc_profile") or None,
            xmp=xmp,
        )

    def transform(self, decoded: DecodedImage, options: ConversionOptions) -> DecodedImage:
        img = ImageOps.exif_transpose(decoded.image)
        # orientation is baked into the pixels now
        exif = img.getexif()
        exif.pop(EXIF_ORIENTATION, None)
        exif_bytes = exif.tobytes() if len(exif) else None

        img, icc_profile = self._to_srgb(img, decoded.icc_profile)
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA" if _has_alpha(img) else "RGB")

        if options.resize_requested:
            img = self._resize(img, options.width, options.height, options.fit)

        for key in ("exif", "icc_profile", *XMP_KEYS):
            img.info.pop(key, None)

        return replace(decoded, image=img, exif=exif_bytes, icc_profile=icc_profile)

    def encode(self, decoded: DecodedImage, options: ConversionOptions) -> bytes:
        params: dict[str, object] = {
            "quality": options.quality,
            "lossless": options.lossless,
            "method": options.effort,
        }
        if not options.strip_metadata:
            if decoded.exif:
                params["exif"] = decoded.exif
            if decoded.icc_profile:
                params["icc_profile"] = decoded.icc_profile
            if decoded.xmp:
                params["xmp"] = decoded.xmp

        buf = BytesIO()
        decoded.image.save(buf, format="WEBP", **params)
        return buf.getvalue()

    def _to_srgb(self, img: Image.Image, icc_profile: bytes | None) -> tuple[Image.Image, bytes | None]:
        """Map pixels into sRGB when an embedded profile says otherwise."""
        if img.mode == "CMYK" and not icc_profile:
            return img.convert("RGB"), None
        if not icc_profile or img.mode not in ("RGB", "RGBA", "CMYK"):
            return img, icc_profile
        try:
            source = ImageCms.ImageCmsProfile(BytesIO(icc_profile))
            output_mode = "RGB" if img.mode == "CMYK" else img.mode
            converted = ImageCms.profileToProfile(img, source, _SRGB_PROFILE, outputMode=output_mode)
        except (ImageCms.PyCMSError, OSError, ValueError) as e:
            logger.debug("Color profile conversion skipped: %s", e)
            return img, icc_profile
        return converted, None

    def _resize(
        self,
        img: Image.Image,
        width: int | None,
        height: int | None,
        fit: FitMode,
    ) -> Image.Image:
        """Resize into the requested box without ever enlarging the source."""
        src_w, src_h = img.size
        box_w, box_h = _target_box(src_w, src_h, width, height)

        if fit in (FitMode.INSIDE, FitMode.OUTSIDE):
            pick = min if fit is FitMode.INSIDE else max
            scale = min(1.0, pick(box_w / src_w, box_h / src_h))
            if scale >= 1.0:
                return img
            size = (max(1, round(src_w * scale)), max(1, round(src_h * scale)))
            return img.resize(size, Image.Resampling.LANCZOS)

        if box_w > src_w or box_h > src_h:
            return img

        if fit is FitMode.FILL:
            return img.resize((box_w, box_h), Image.Resampling.LANCZOS)
        if fit is FitMode.COVER:
            return ImageOps.fit(img, (box_w, box_h), method=Image.Resampling.LANCZOS)

        background = (0, 0, 0, 0) if img.mode == "RGBA" else (0, 0, 0)
        return ImageOps.pad(img, (box_w, box_h), method=Image.Resampling.LANCZOS, color=background)

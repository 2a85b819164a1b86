"""Resized JPEG renditions of an uploaded image, built with Pillow."""

import io
import logging
from dataclasses import dataclass
from typing import Dict, Tuple

from PIL import Image, ImageOps

from app.core.errors import ProcessingError

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (300, 300)
MEDIUM_MAX_SIZE = (800, 800)

ORIGINAL_QUALITY = 90
THUMBNAIL_QUALITY = 80
MEDIUM_QUALITY = 85

# Largest accepted decoded size. Pillow itself only warns below twice this
MAX_PIXELS = Image.MAX_IMAGE_PIXELS

# Pillow decoders fail with any of these on corrupt pixel data
DECODE_ERRORS = (OSError, ValueError, SyntaxError, Image.DecompressionBombError)


@dataclass
class ImageVariant:
    name: str
    suffix: str
    data: bytes
    width: int
    height: int
    format: str = "jpeg"
    content_type: str = "image/jpeg"


def _check_pixel_count(img: Image.Image):
    """Refuse images whose header promises more pixels than MAX_PIXELS, before decoding"""
    if img.width * img.height > MAX_PIXELS:
        raise ProcessingError(
            f"Image is too large to process: {img.width}x{img.height} pixels (max: {MAX_PIXELS})"
        )


def _open_rgb(data: bytes) -> Image.Image:
    """Decode `data`, apply EXIF orientation and flatten to RGB"""
    img = Image.open(io.BytesIO(data))
    _check_pixel_count(img)
    img.load()
    img = ImageOps.exif_transpose(img)

    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode_jpeg(img: Image.Image, quality: int, progressive: bool = False) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, "JPEG", quality=quality, progressive=progressive, optimize=progressive)
    return buffer.getvalue()


def read_dimensions(data: bytes) -> Tuple[int, int]:
    """Pixel size of the encoded image"""
    try:
        with Image.open(io.BytesIO(data)) as img:
            _check_pixel_count(img)
            img.load()
            return img.size
    except DECODE_ERRORS as e:
        raise ProcessingError(f"Unable to read image data: {e}") from e


def generate_variants(data: bytes) -> Dict[str, ImageVariant]:
    """
    Build the three renditions stored for every photo.

    - original: source pixels re-encoded as progressive JPEG, quality 90
    - thumbnail: 300x300 centre crop covering the whole square
    - medium: fits inside 800x800, never enlarged, quality 85

    Raises ProcessingError when the pixel data cannot be decoded. Nothing
    is returned (and so nothing can be persisted) unless all three succeed.
    """
    try:
        img = _open_rgb(data)

        original = ImageVariant(
            name="original",
            suffix="original",
            data=_encode_jpeg(img, ORIGINAL_QUALITY, progressive=True),
            width=img.width,
            height=img.height,
        )

        thumb = ImageOps.fit(img, THUMBNAIL_SIZE, method=Image.LANCZOS, centering=(0.5, 0.5))
        thumbnail = ImageVariant(
            name="thumbnail",
            suffix="thumb",
            data=_encode_jpeg(thumb, THUMBNAIL_QUALITY),
            width=THUMBNAIL_SIZE[0],
            height=THUMBNAIL_SIZE[1],
        )

        # thumbnail() keeps the aspect ratio and only ever shrinks
        resized = img.copy()
        resized.thumbnail(MEDIUM_MAX_SIZE, Image.LANCZOS)
        medium = ImageVariant(
            name="medium",
            suffix="medium",
            data=_encode_jpeg(resized, MEDIUM_QUALITY),
            width=resized.width,
            height=resized.height,
        )
    except DECODE_ERRORS as e:
        logger.error(f"Variant generation failed: {e}")
        raise ProcessingError(f"The image data is corrupted or unsupported: {e}") from e

    return {variant.name: variant for variant in (original, thumbnail, medium)}

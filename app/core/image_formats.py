"""Accepted upload formats, recognised by their leading signature bytes"""
from typing import Optional

ALLOWED_CONTENT_TYPES = {
    "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"
}

_SIGNATURES = (
    (b"\xff\xd8\xff", "jpeg"),
    (b"\x89PNG", "png"),
    (b"GIF8", "gif"),
)


def detect_image_format(data: bytes) -> Optional[str]:
    """Return the image format named by the magic bytes, or None"""
    if not data:
        return None

    for signature, image_format in _SIGNATURES:
        if data.startswith(signature):
            return image_format

    # RIFF container, WEBP fourcc at offset 8
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"

    return None

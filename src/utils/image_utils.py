"""Image helpers for the OCR normalization path.

Images reach the pipeline either as uploaded bytes (API / CLI) or as a
``data:`` URL string.  Before they are sent to a vision model they are
decoded, converted to RGB and resized so the longest side stays within
the range vision models read well.
"""

from __future__ import annotations

import base64
import binascii
import io

from PIL import Image, ImageEnhance, UnidentifiedImageError

from src.utils.errors import ExtractionError

_DATA_URL_PREFIX = "data:"


def detect_media_type(image_bytes: bytes) -> str:
    """Detect the MIME type of an image from its magic bytes."""
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if image_bytes[:2] == b"\xff\xd8":
        return "image/jpeg"
    return "image/jpeg"


def decode_image_payload(payload: str | bytes) -> bytes:
    """Return raw image bytes from a ``data:`` URL, bare base64, or bytes.

    Raises
    ------
    ExtractionError
        If the string is not valid base64.
    """
    if isinstance(payload, bytes):
        return payload
    data = payload.strip()
    if data.startswith(_DATA_URL_PREFIX):
        _, _, data = data.partition(",")
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ExtractionError(message="Image payload is not valid base64") from exc


def to_data_url(image_bytes: bytes) -> str:
    """Encode *image_bytes* as a ``data:<mime>;base64,...`` URL."""
    b64 = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{detect_media_type(image_bytes)};base64,{b64}"


def resize_for_vision(image: Image.Image, max_dim: int = 2000, min_dim: int = 800) -> Image.Image:
    """Resize so the largest dimension is between *min_dim* and *max_dim*.

    Preserves aspect ratio.  Small scans are upscaled so characters stay
    legible to the model; huge photos are downscaled to save tokens.
    """
    width, height = image.size
    largest = max(width, height)

    if largest < min_dim:
        scale = min_dim / largest
    elif largest > max_dim:
        scale = max_dim / largest
    else:
        return image

    new_width = max(1, int(width * scale))
    new_height = max(1, int(height * scale))
    return image.resize((new_width, new_height), Image.LANCZOS)


def prepare_for_vision(image_bytes: bytes, max_dim: int = 2000) -> bytes:
    """Decode, resize and lightly sharpen an image; return PNG bytes.

    Raises
    ------
    ExtractionError
        If Pillow cannot identify the image format.
    """
    try:
        image = Image.open(io.BytesIO(image_bytes))
        image.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ExtractionError(message="Unsupported or corrupt image", provider_name="pillow") from exc

    image = image.convert("RGB")
    image = resize_for_vision(image, max_dim=max_dim)
    image = ImageEnhance.Contrast(image).enhance(1.3)

    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()

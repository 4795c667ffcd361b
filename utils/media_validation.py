"""Validation helpers for image references attached to chat requests."""

import base64
import binascii
import io

from PIL import Image, UnidentifiedImageError

PASSTHROUGH_SCHEMES = ("http://", "https://")


def to_image_data_url(image_b64: str) -> str:
    """Build a data URL for raw base64 image bytes, sniffing the format with Pillow.

    Raises:
        ValueError: If the payload is not base64 or not a readable image.
    """
    try:
        raw = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Image must be a data URL, an http(s) URL, or base64 data.") from exc

    try:
        with Image.open(io.BytesIO(raw)) as img:
            mime_type = Image.MIME.get(img.format or "", "")
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Decoded bytes are not a supported image format") from exc

    if not mime_type:
        raise ValueError("Could not determine the image MIME type.")
    return f"data:{mime_type};base64,{image_b64}"


def normalize_image_reference(reference: str) -> str:
    """Return an image reference the model can consume.

    Data URLs and http(s) URLs are passed through unchanged; bare base64
    payloads are wrapped in a data URL.
    """
    ref = (reference or "").strip()
    if not ref:
        raise ValueError("Image reference is empty.")
    if ref.startswith("data:"):
        header, sep, _ = ref.partition(",")
        if not sep or not header.startswith("data:image/"):
            raise ValueError("Data URL must carry an image payload.")
        return ref
    if ref.startswith(PASSTHROUGH_SCHEMES):
        return ref
    return to_image_data_url("".join(ref.split()))

import base64
import binascii
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from core.errors import InvalidRequest

DATA_URL_PREFIX = "data:image/"
BASE64_MARKER = ";base64,"

# Formats the capture client accepts before anything is sent
ALLOWED_IMAGE_TYPES = ["image/jpeg", "image/png", "image/webp", "image/gif"]

MSG_IMAGE_REQUIRED = "Image is required"
MSG_INVALID_FORMAT = "Invalid image format. Please provide a valid base64 image."
MSG_TOO_LARGE = "Image exceeds size limit"


@dataclass(frozen=True)
class ImagePayload:
    data_url: str
    mime_type: str
    size_bytes: int


def estimate_decoded_size(base64_data: str) -> int:
    """Decoded byte length of a base64 string, computed without decoding it"""
    padding = len(base64_data) - len(base64_data.rstrip("="))
    return (len(base64_data) * 3) // 4 - padding


def validate_image_data_url(image: Any, max_bytes: int) -> ImagePayload:
    """
    Validate an incoming image data URL, first failure wins.

    Args:
        image: The raw `image` field of the request body
        max_bytes: Ceiling on the decoded size, 0 for no ceiling

    Returns:
        ImagePayload describing the accepted image

    Raises:
        InvalidRequest: If the image is missing, malformed or too large
    """
    if image is None or image == "":
        raise InvalidRequest(MSG_IMAGE_REQUIRED)

    if not isinstance(image, str) or not image.startswith(DATA_URL_PREFIX):
        raise InvalidRequest(MSG_INVALID_FORMAT)

    header, marker, base64_data = image.partition(BASE64_MARKER)
    if not marker or not base64_data:
        raise InvalidRequest(MSG_INVALID_FORMAT)

    size_bytes = estimate_decoded_size(base64_data)
    if max_bytes and size_bytes > max_bytes:
        raise InvalidRequest(
            MSG_TOO_LARGE,
            details=f"Decoded image is {size_bytes} bytes, limit is {max_bytes} bytes",
        )

    try:
        base64.b64decode(base64_data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidRequest(MSG_INVALID_FORMAT, details="Image payload is not valid base64")

    mime_type = header[len("data:"):].split(";")[0]
    return ImagePayload(data_url=image, mime_type=mime_type, size_bytes=size_bytes)


def sniff_image_type(data: bytes) -> Optional[str]:
    """Detect the image MIME type from its magic bytes"""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def encode_image(data: bytes, max_bytes: int, filename: Optional[str] = None) -> str:
    """
    Check an image on the client side and encode it as a data URL.

    Args:
        data: Raw image bytes
        max_bytes: Ceiling on the image size, 0 for no ceiling
        filename: Optional file name used when the content type cannot be sniffed

    Returns:
        A data:image/<subtype>;base64,<payload> string

    Raises:
        ValueError: If the image is empty, of an unsupported type or too large
    """
    if not data:
        raise ValueError("Image file is empty")

    mime_type = sniff_image_type(data)
    if mime_type is None and filename:
        mime_type, _ = mimetypes.guess_type(filename)
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"

    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise ValueError(
            f"Unsupported image type: {mime_type or 'unknown'}. "
            f"Allowed types: {', '.join(ALLOWED_IMAGE_TYPES)}"
        )

    if max_bytes and len(data) > max_bytes:
        raise ValueError(f"Image is {len(data)} bytes, limit is {max_bytes} bytes")

    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type}{BASE64_MARKER}{encoded}"


def encode_image_file(path: Path, max_bytes: int) -> str:
    """Read an image file and encode it as a data URL"""
    return encode_image(Path(path).read_bytes(), max_bytes, filename=str(path))

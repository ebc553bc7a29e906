from io import BytesIO
from typing import BinaryIO
from PIL import Image
import xml.etree.ElementTree as ET

from app.exceptions import InvalidImageException

# Pillow format name for each raster type it can decode
PILLOW_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
}

def validate_image_bytes(file_bytes: bytes, content_type: str) -> str:
    """Validate that the uploaded bytes really are of the declared type."""
    if content_type in PILLOW_FORMATS:
        try:
            img = Image.open(BytesIO(file_bytes))
            img.load()
        except Exception:
            raise InvalidImageException("Invalid image file")
        if (img.format or "").upper() != PILLOW_FORMATS[content_type]:
            raise InvalidImageException(
                f"File content ({img.format}) does not match declared type {content_type}"
            )
        return content_type
    elif content_type == "image/svg+xml":
        try:
            root = ET.fromstring(file_bytes.decode("utf-8"))
        except Exception:
            raise InvalidImageException("Invalid SVG file")
        # Check if root tag is svg (with or without namespace)
        tag_name = root.tag.split("}")[-1].lower()
        if tag_name != "svg":
            raise InvalidImageException("Invalid SVG root element")
        return content_type
    # Types Pillow cannot decode (avif) are accepted on their declared type
    return content_type

def verify_upload(fileobj: BinaryIO, content_type: str, max_bytes: int) -> None:
    """Reads the upload, validates it and rewinds it for storage."""
    data = fileobj.read(max_bytes + 1)
    fileobj.seek(0)
    if len(data) > max_bytes:
        raise InvalidImageException(f"File too large (limit {max_bytes} bytes)")
    validate_image_bytes(data, content_type)

import os
import re
import tempfile
from typing import BinaryIO, Iterable, Optional
from app.image_service.models import StoredFile
from app.exceptions import InvalidImageException
import logging

log = logging.getLogger(__name__)

# Allowed content types
ALLOWED_IMAGE_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/avif",
    "image/gif",
    "image/svg+xml",
})

MAX_UPLOAD_BYTES = 5 * 1024 * 1024
CHUNK_SIZE = 64 * 1024

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")

def sanitize_filename(name: Optional[str]) -> str:
    """Replaces every character outside [a-zA-Z0-9_.-] with an underscore."""
    safe = _UNSAFE_CHARS.sub("_", name or "")
    if safe in ("", ".", ".."):
        raise InvalidImageException(f"Invalid file name: {name!r}")
    return safe

# -------------------------
# Local directory blob store
# -------------------------
class LocalBlobStore:
    """
        Stores uploads in a flat directory under their sanitized original name.

        Names are not deduplicated: a second upload with the same sanitized
        name replaces the first blob.
    """
    def __init__(
        self,
        directory: str,
        public_base_url: str,
        max_bytes: int = MAX_UPLOAD_BYTES,
        allowed_types: Iterable[str] = ALLOWED_IMAGE_TYPES,
    ):
        self.directory = os.path.abspath(directory)
        self.public_base_url = public_base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(allowed_types)
        self.ensure_directory()

    def ensure_directory(self):
        os.makedirs(self.directory, exist_ok=True)
        log.info("Using blob directory %s", self.directory)

    def path_for(self, filename: str) -> str:
        return os.path.join(self.directory, filename)

    def public_url(self, filename: str) -> str:
        return f"{self.public_base_url}/uploads/{filename}"

    def save(self, fileobj: BinaryIO, original_name: Optional[str], content_type: Optional[str]) -> StoredFile:
        """
            Streams an upload into the directory.

            Type and size are checked before the blob reaches its final name;
            a rejected upload leaves nothing behind.
        """
        if content_type not in self.allowed_types:
            raise InvalidImageException(f"Unsupported content type: {content_type}")
        filename = sanitize_filename(original_name)

        fd, tmp_path = tempfile.mkstemp(prefix=".upload-", suffix=".part", dir=self.directory)
        size = 0
        try:
            with os.fdopen(fd, "wb") as out:
                while True:
                    chunk = fileobj.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > self.max_bytes:
                        raise InvalidImageException(
                            f"File too large (limit {self.max_bytes} bytes)"
                        )
                    out.write(chunk)
            os.replace(tmp_path, self.path_for(filename))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        log.debug("Stored blob %s (%d bytes)", filename, size)
        return StoredFile(filename=filename, size=size, mimetype=content_type)

    def delete(self, filename: str) -> bool:
        """Best-effort removal; failures are logged and swallowed."""
        try:
            os.remove(self.path_for(filename))
        except OSError as e:
            log.warning("Could not delete blob %s: %s", filename, e)
            return False
        log.debug("Deleted blob %s", filename)
        return True

import json
import os
import tempfile
from typing import List, Optional, Protocol
from pydantic import TypeAdapter, ValidationError
from app.image_service.models import ImageRecord
from app.exceptions import MetadataParseError
import logging

log = logging.getLogger(__name__)

_records_adapter = TypeAdapter(List[ImageRecord])

def dump_records(records: List[ImageRecord]) -> str:
    return json.dumps(
        [r.model_dump(mode="json", by_alias=True) for r in records],
        indent=2,
    )

class MetadataStore(Protocol):
    """Whole-array load/save contract shared by every metadata backend."""

    def load(self) -> List[ImageRecord]:
        ...

    def save(self, records: List[ImageRecord]) -> None:
        ...

# -------------------------
# JSON file store
# -------------------------
class JsonFileMetadataStore:
    """
        Keeps every image record in a single JSON array file.

        Each save rewrites the whole file through a sibling temporary file and
        an atomic rename, so a concurrent load sees either the old or the new
        array and never a partial one. Saves are not serialized against each
        other: when two writers race, the last rename wins.
    """
    def __init__(self, path: str):
        self.path = os.path.abspath(path)
        self.ensure_file()

    def ensure_file(self):
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        if not os.path.exists(self.path):
            with open(self.path, "w", encoding="utf-8") as fh:
                fh.write("[]")
            log.info("Created metadata file %s", self.path)
        else:
            log.debug("Metadata file %s already exists", self.path)

    def load(self) -> List[ImageRecord]:
        with open(self.path, "r", encoding="utf-8") as fh:
            raw = fh.read()
        try:
            return _records_adapter.validate_json(raw)
        except ValidationError as e:
            raise MetadataParseError(f"Malformed metadata file {self.path}: {e}") from e

    def save(self, records: List[ImageRecord]) -> None:
        payload = dump_records(records)
        directory, name = os.path.split(self.path)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=directory)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, self.path)
        log.debug("Saved %d records to %s", len(records), self.path)

# -------------------------
# In-memory store
# -------------------------
class InMemoryMetadataStore:
    """Same contract as the JSON store, without touching the filesystem."""
    def __init__(self, records: Optional[List[ImageRecord]] = None):
        self._records = [r.model_copy(deep=True) for r in (records or [])]
        self.saves = 0

    def load(self) -> List[ImageRecord]:
        return [r.model_copy(deep=True) for r in self._records]

    def save(self, records: List[ImageRecord]) -> None:
        self._records = [r.model_copy(deep=True) for r in records]
        self.saves += 1

from typing import Any, BinaryIO, Dict, List, Optional, Sequence
import json
import logging

from app.storage.metadata import MetadataStore
from app.storage.blobs import LocalBlobStore
from app.image_service.models import ImageRecord, ImageUpdate, ListImagesResponse, utc_timestamp
from app.image_service.validation import verify_upload
from app.exceptions import ImageNotFoundException, InvalidImageException

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

def normalize_tags(tags: Any) -> List[str]:
    """Accepts a list of values or one comma separated string; trims and drops empties."""
    if not tags:
        return []
    if isinstance(tags, str):
        parts = tags.split(",")
    elif isinstance(tags, (list, tuple)):
        parts = [str(t) for t in tags]
    else:
        return []
    return [t.strip() for t in parts if t.strip()]

def derive_title(filename: str) -> str:
    """Title is the stored filename up to its first dot (`a.b.jpg` -> `a`)."""
    return filename.split(".")[0]

def parse_custom(raw: Any) -> Dict[str, Any]:
    """Decodes the free-form `custom` form field; anything unusable becomes {}."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        log.debug("Ignoring unparseable custom metadata %r", raw)
        return {}
    return value if isinstance(value, dict) else {}

def _find_index(records: List[ImageRecord], image_id: str) -> int:
    for idx, record in enumerate(records):
        if record.id == image_id:
            return idx
    raise ImageNotFoundException(image_id)

def create_image(
    store: MetadataStore,
    blobs: LocalBlobStore,
    fileobj: BinaryIO,
    filename: Optional[str],
    content_type: Optional[str],
    width: Any = "0",
    height: Any = "0",
    alt: Any = "",
    tags: Any = None,
    custom: Any = None,
    verify_content: bool = False,
) -> ImageRecord:
    """Stores the blob, then appends its record to the metadata store."""
    if verify_content:
        verify_upload(fileobj, content_type, blobs.max_bytes)
    stored = blobs.save(fileobj, filename, content_type)
    record = ImageRecord(
        filename = stored.filename,
        url = blobs.public_url(stored.filename),
        title = derive_title(stored.filename),
        alt = str(alt),
        tags = normalize_tags(tags),
        custom = parse_custom(custom),
        size = stored.size,
        width = str(width),
        height = str(height),
        mimetype = stored.mimetype,
    )

    records = store.load()
    records.append(record)
    store.save(records)
    log.info("Created image %s (%s)", record.id, record.filename)
    return record

def search_images(records: Sequence[ImageRecord], search: str = "", tag: str = "") -> List[ImageRecord]:
    """Case-insensitive substring search over title/alt/tags plus exact tag filter."""
    items = list(records)
    if search:
        q = search.lower()
        items = [
            r for r in items
            if q in r.title.lower()
            or q in r.alt.lower()
            or any(q in t.lower() for t in r.tags)
        ]
    if tag:
        wanted = tag.lower()
        items = [r for r in items if wanted in (t.lower() for t in r.tags)]
    return items

def paginate(items: Sequence[ImageRecord], page: int, limit: int) -> List[ImageRecord]:
    start = (page - 1) * limit
    return list(items[start:start + limit])

def list_images(
    store: MetadataStore,
    search: str = "",
    tag: str = "",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> ListImagesResponse:
    """Filters then pages the catalog; pages past the end are empty, not errors."""
    page = max(1, page)
    limit = min(MAX_PAGE_SIZE, max(1, limit))

    matched = search_images(store.load(), search=search, tag=tag)
    return ListImagesResponse(
        items=paginate(matched, page, limit),
        total=len(matched),
        page=page,
        limit=limit,
    )

def get_image(store: MetadataStore, image_id: str) -> ImageRecord:
    records = store.load()
    return records[_find_index(records, image_id)]

def update_image(store: MetadataStore, image_id: str, changes: Optional[ImageUpdate] = None) -> ImageRecord:
    """Merges the fields present in `changes`; custom is replaced, not merged."""
    records = store.load()
    idx = _find_index(records, image_id)
    current = records[idx]

    changes = changes or ImageUpdate()
    sent = {k: v for k, v in changes.model_dump(exclude_unset=True).items() if v is not None}
    if "tags" in sent:
        sent["tags"] = normalize_tags(sent["tags"])
    updated = current.model_copy(update={**sent, "updated_at": utc_timestamp()})

    records[idx] = updated
    store.save(records)
    log.info("Updated metadata of image %s", image_id)
    return updated

def replace_image_file(
    store: MetadataStore,
    blobs: LocalBlobStore,
    image_id: str,
    fileobj: Optional[BinaryIO],
    filename: Optional[str],
    content_type: Optional[str],
    verify_content: bool = False,
) -> ImageRecord:
    """Swaps the blob behind an existing record."""
    records = store.load()
    idx = _find_index(records, image_id)
    if fileobj is None:
        raise InvalidImageException("No file uploaded")

    previous = records[idx]
    if verify_content:
        verify_upload(fileobj, content_type, blobs.max_bytes)
    stored = blobs.save(fileobj, filename, content_type)

    updated = previous.model_copy(update={
        "filename": stored.filename,
        "url": blobs.public_url(stored.filename),
        "size": stored.size,
        "mimetype": stored.mimetype,
        "updated_at": utc_timestamp(),
    })
    records[idx] = updated
    store.save(records)

    # Old blob goes only once the record no longer names it
    if previous.filename != stored.filename:
        blobs.delete(previous.filename)
    log.info("Replaced file of image %s with %s", image_id, stored.filename)
    return updated

def remove_image(store: MetadataStore, blobs: LocalBlobStore, image_id: str) -> ImageRecord:
    """Removes the record first, then the blob (best effort)."""
    records = store.load()
    removed = records.pop(_find_index(records, image_id))
    store.save(records)

    blobs.delete(removed.filename)
    log.info("Deleted image %s", image_id)
    return removed

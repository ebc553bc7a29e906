from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator
from uuid import uuid4

def new_image_id() -> str:
    """Generates a new unique image ID."""
    return str(uuid4())

def utc_timestamp() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

class ImageRecord(BaseModel):
    # Unknown keys already in the metadata file survive a rewrite
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(default_factory=new_image_id)
    filename: str
    url: str
    title: str
    alt: str = ""
    tags: List[str] = []
    custom: Dict[str, Any] = {}
    size: int
    width: str = "0"
    height: str = "0"
    mimetype: str
    uploaded_at: str = Field(default_factory=utc_timestamp, alias="uploadedAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")

class ImageUpdate(BaseModel):
    """PATCH body; only the keys the client sends are applied."""
    title: Optional[str] = None
    alt: Optional[str] = None
    tags: Optional[Union[List[Any], str]] = None
    custom: Optional[Dict[str, Any]] = None

    @field_validator("title", "alt", mode="before")
    @classmethod
    def coerce_text(cls, value):
        if value is None or isinstance(value, str):
            return value
        return str(value)

class StoredFile(BaseModel):
    filename: str
    size: int
    mimetype: str

class ListImagesResponse(BaseModel):
    items: List[ImageRecord]
    total: int
    page: int
    limit: int

class DeleteResponse(BaseModel):
    ok: bool = True
    id: str

class HealthResponse(BaseModel):
    ok: bool = True

from fastapi import APIRouter, Body, Depends, UploadFile, File, Form, Query, Response
from starlette.datastructures import UploadFile as StarletteUploadFile
from typing import List, Optional, Union
import logging

from app.settings import Settings
from app.storage.metadata import MetadataStore
from app.storage.blobs import LocalBlobStore
from app.dependencies.dependencies import get_metadata_store, get_blob_store, get_app_settings
from app.image_service.service import (
    DEFAULT_PAGE_SIZE,
    create_image,
    list_images,
    get_image,
    update_image,
    replace_image_file,
    remove_image,
)
from app.image_service.models import ImageRecord, ImageUpdate, ListImagesResponse, DeleteResponse
from app.exceptions import InvalidImageException

log = logging.getLogger(__name__)

# Handlers are coroutines with no await between store load and save, so
# mutations from one process never interleave on the metadata file.
router = APIRouter(
    prefix="/images",
    tags=["images"]
)

def _form_tags(tags: Optional[List[str]]):
    # A single form value is a comma separated string; repeated values are a list
    if tags and len(tags) == 1:
        return tags[0]
    return tags

def _uploaded_file(image) -> Optional[StarletteUploadFile]:
    # A plain text `image` field carries no file
    return image if isinstance(image, StarletteUploadFile) else None

@router.post("", response_model=ImageRecord, status_code=201)
async def upload_image(
    response: Response,
    image: Union[UploadFile, str, None] = File(None),
    width: str = Form("0"),
    height: str = Form("0"),
    alt: str = Form(""),
    tags: Optional[List[str]] = Form(None),
    custom: Optional[str] = Form(None),
    store: MetadataStore = Depends(get_metadata_store),
    blobs: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_app_settings),
):
    """Uploads an image and records its metadata."""
    response.headers["X-Content-Type-Options"] = "nosniff"
    image = _uploaded_file(image)
    if image is None:
        raise InvalidImageException("No file uploaded")

    return create_image(
        store=store,
        blobs=blobs,
        fileobj=image.file,
        filename=image.filename,
        content_type=image.content_type,
        width=width,
        height=height,
        alt=alt,
        tags=_form_tags(tags),
        custom=custom,
        verify_content=settings.verify_image_content,
    )

@router.get("", response_model=ListImagesResponse)
async def list_images_handler(
    search: str = Query(""),
    tag: str = Query(""),
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE),
    store: MetadataStore = Depends(get_metadata_store),
):
    """Lists images; page and limit are clamped rather than rejected."""
    return list_images(store, search=search, tag=tag, page=page, limit=limit)

@router.get("/{image_id}", response_model=ImageRecord)
async def get_image_handler(
    image_id: str,
    store: MetadataStore = Depends(get_metadata_store),
):
    """Gets image metadata."""
    return get_image(store, image_id)

@router.patch("/{image_id}", response_model=ImageRecord)
async def update_image_handler(
    image_id: str,
    changes: Optional[ImageUpdate] = Body(None),
    store: MetadataStore = Depends(get_metadata_store),
):
    """Updates title, alt, tags and custom metadata."""
    return update_image(store, image_id, changes)

@router.post("/{image_id}/file", response_model=ImageRecord)
async def replace_file_handler(
    image_id: str,
    response: Response,
    image: Union[UploadFile, str, None] = File(None),
    store: MetadataStore = Depends(get_metadata_store),
    blobs: LocalBlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_app_settings),
):
    """Replaces the stored file behind an image record."""
    response.headers["X-Content-Type-Options"] = "nosniff"
    image = _uploaded_file(image)
    return replace_image_file(
        store=store,
        blobs=blobs,
        image_id=image_id,
        fileobj=image.file if image is not None else None,
        filename=image.filename if image is not None else None,
        content_type=image.content_type if image is not None else None,
        verify_content=settings.verify_image_content,
    )

@router.delete("/{image_id}", response_model=DeleteResponse)
async def delete_image(
    image_id: str,
    store: MetadataStore = Depends(get_metadata_store),
    blobs: LocalBlobStore = Depends(get_blob_store),
):
    """Deletes an image record and its file."""
    removed = remove_image(store, blobs, image_id)
    return DeleteResponse(id=removed.id)

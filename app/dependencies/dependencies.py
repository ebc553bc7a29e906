from fastapi import Request
from app.settings import Settings
from app.storage.metadata import MetadataStore
from app.storage.blobs import LocalBlobStore

def get_metadata_store(request: Request) -> MetadataStore:
    """Dependency provider for the metadata store"""
    return request.app.state.metadata_store

def get_blob_store(request: Request) -> LocalBlobStore:
    """Dependency provider for the blob store"""
    return request.app.state.blob_store

def get_app_settings(request: Request) -> Settings:
    """Dependency provider for the settings the app was built with"""
    return request.app.state.settings

import io
import pytest
from PIL import Image
from fastapi.testclient import TestClient

from app.main import create_app
from app.settings import Settings
from app.storage.metadata import InMemoryMetadataStore
from app.storage.blobs import LocalBlobStore


def make_png_bytes(color="red"):
    """Generate a simple valid PNG in-memory."""
    img = Image.new("RGB", (10, 10), color=color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return make_png_bytes()


@pytest.fixture(scope="function")
def test_settings(tmp_path):
    return Settings(
        data_file=str(tmp_path / "data" / "images.json"),
        uploads_dir=str(tmp_path / "uploads"),
        public_base_url="http://testserver",
        cors_origins="http://allowed.example,http://localhost:4000",
        api_key="",
        _env_file=None,
    )


@pytest.fixture(scope="function")
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), public_base_url="http://testserver")


@pytest.fixture(scope="function")
def memory_store():
    return InMemoryMetadataStore()


@pytest.fixture(scope="function")
def test_client(test_settings):
    """Client against the JSON file store and a blob directory under tmp_path."""
    app = create_app(test_settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture(scope="function")
def make_client(test_settings):
    """Builds clients with overridden settings (API key, content checks...)."""
    clients = []

    def _make(**overrides):
        settings = test_settings.model_copy(update=overrides)
        client = TestClient(create_app(settings), raise_server_exceptions=False)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)

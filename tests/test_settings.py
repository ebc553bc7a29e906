from app.settings import Settings, get_settings


def test_defaults(monkeypatch):
    for var in ("CORS_ORIGINS", "API_KEY", "MAX_UPLOAD_BYTES", "VERIFY_IMAGE_CONTENT"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings(_env_file=None)
    assert settings.allowed_origins == ["http://localhost:4000"]
    assert settings.api_key == ""
    assert settings.max_upload_bytes == 5 * 1024 * 1024
    assert settings.verify_image_content is False


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("API_KEY", "secret")
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "1024")
    monkeypatch.setenv("VERIFY_IMAGE_CONTENT", "true")
    settings = Settings(_env_file=None)
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.api_key == "secret"
    assert settings.max_upload_bytes == 1024
    assert settings.verify_image_content is True


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()

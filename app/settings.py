from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import List
from functools import lru_cache

class Settings(BaseSettings):
    app_title: str = Field("Image Catalog Service")

    # Storage locations
    data_file: str = Field("data/images.json")
    uploads_dir: str = Field("uploads")
    public_base_url: str = Field("http://localhost:4000")

    # Upload policy
    max_upload_bytes: int = Field(5 * 1024 * 1024)
    verify_image_content: bool = Field(False)

    # Access control
    cors_origins: str = Field("http://localhost:4000")  # Comma Separated Values
    api_key: str = Field("")

    log_level: str = Field("INFO")
    host: str = Field("0.0.0.0")
    port: int = Field(4000)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

@lru_cache
def get_settings() -> Settings:
    """Builds the settings from the environment on first use and caches them."""
    return Settings()

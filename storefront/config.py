# storefront/config.py
from pathlib import Path
from functools import lru_cache
from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    ENV: str = "development"

    # backend REST API; the storefront frontend exposes it as NEXT_PUBLIC_API_URL
    API_URL: str = Field(
        "http://localhost:5000/api",
        validation_alias=AliasChoices("API_URL", "NEXT_PUBLIC_API_URL"),
    )
    # comma-separated substrings marking a target as an internal API call
    INTERNAL_API_MARKERS: str = "/api/"
    HTTP_TIMEOUT: float = 30.0

    DATA_DIR: Path = Path("data")  # where the local storage file lives
    STORAGE_FILE: str = "local_storage.csv"

    CART_STORAGE_KEY: str = "cart-storage"
    CART_STORAGE_VERSION: int = 0
    # False keeps two colour variants of one product/size in a single line
    CART_KEY_INCLUDES_VARIANT: bool = False

    TOKEN_STORAGE_KEY: str = "token"
    PERSIST_TOKEN: bool = True

    CUSTOMER_ROLE_ID: str = "4954a96d-6b18-47af-802d-1f76ba029441"

    LOG_LEVEL: str = "INFO"

    # Example .env:
    # NEXT_PUBLIC_API_URL=https://shop.example.com/api
    # DATA_DIR=./data

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def internal_markers(self) -> List[str]:
        return [m.strip() for m in self.INTERNAL_API_MARKERS.split(",") if m.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()


settings = get_settings()

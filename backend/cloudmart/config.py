"""
CloudMart Functions — Application Configuration
================================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads environment variables (or a .env file),
       validates types/ranges and produces a Settings object.
Who:   Built once by create_app() and handed to request handlers through
       FastAPI dependencies (see cloudmart.dependencies).
When:  At application construction. Handlers never read os.environ.

The storage connection string keeps the Azure Functions variable name
(AzureWebJobsStorage). Its absence is NOT a startup failure: the service
still answers /health, and storage endpoints answer 500 with a
configuration error until it is set.
"""

from typing import List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Resource names default to the values the storefront was deployed with.
    Attributes are grouped by concern.
    """

    # ── Storage Account ───────────────────────────────────────────────────
    # Format: DefaultEndpointsProtocol=https;AccountName=...;AccountKey=...;
    # "UseDevelopmentStorage=true" targets a local Azurite emulator.
    storage_connection_string: str = Field(
        default="",
        validation_alias=AliasChoices("AzureWebJobsStorage", "STORAGE_CONNECTION_STRING"),
        description="Azure Storage connection string",
    )

    # ── Product Catalogue (Table Storage) ─────────────────────────────────
    products_table: str = Field(default="Products")
    product_partition: str = Field(default="ProductPartition")

    # ── Orders (Queue Storage) ────────────────────────────────────────────
    orders_queue: str = Field(default="order-queue")

    # ── Product Images (Blob Storage) ─────────────────────────────────────
    images_container: str = Field(default="product-images")

    # What: Multipart form field that carries the uploaded image
    upload_field_name: str = Field(default="file")

    # Default: 10MB; valid range 1MB to 50MB
    max_upload_size: int = Field(default=10_485_760, ge=1_048_576, le=52_428_800)

    # Comma-separated, without dots
    allowed_upload_extensions: str = Field(default="png,jpg,jpeg,gif,webp")

    @property
    def allowed_extensions_set(self) -> set:
        """Normalized ".ext" set used by the upload validator."""
        return {
            f".{ext.strip().lower().lstrip('.')}"
            for ext in self.allowed_upload_extensions.split(",")
            if ext.strip()
        }

    # ── Customer Reviews (File Share) ─────────────────────────────────────
    reviews_share: str = Field(default="customer-service-files")
    reviews_directory: str = Field(default="reviews-complaints")

    # ── CORS ──────────────────────────────────────────────────────────────
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def storage_configured(self) -> bool:
        return bool(self.storage_connection_string.strip())

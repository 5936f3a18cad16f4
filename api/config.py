"""
API configuration settings.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import validator
from pydantic_settings import BaseSettings


class APIConfig(BaseSettings):
    """
    API configuration settings.

    Loaded once at startup from the environment (or ``.env``) and frozen
    afterwards. ``JWT_SECRET`` has no default: without it the settings do not
    load and the process does not start.
    """

    # API Settings
    api_title: str = "Personal Library API"
    api_version: str = "1.0.0"
    api_description: str = "Store your books, keep your favorites, and nobody else's hands on them"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False

    # Database Settings
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "personal_library"

    # Security Settings
    jwt_secret: str
    token_expire_days: int = 30
    bcrypt_rounds: int = 12

    # Uploads
    upload_dir: str = "uploads"
    upload_url: str = "/uploads"

    # CORS Settings
    cors_origins: List[str] = ["*"]

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "frozen": True,
    }

    @validator("jwt_secret")
    def validate_jwt_secret(cls, v):
        """Refuse an empty signing key."""
        if not v or not v.strip():
            raise ValueError("jwt_secret must not be empty")
        return v

    @validator("token_expire_days")
    def validate_token_expire_days(cls, v):
        """Ensure token lifetime is reasonable."""
        if v < 1 or v > 365:
            raise ValueError("token_expire_days must be between 1 and 365")
        return v

    @validator("bcrypt_rounds")
    def validate_bcrypt_rounds(cls, v):
        """bcrypt accepts work factors 4 to 31."""
        if v < 4 or v > 31:
            raise ValueError("bcrypt_rounds must be between 4 and 31")
        return v

    @validator("log_level")
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @validator("log_format")
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()


@lru_cache()
def get_config() -> APIConfig:
    """Load the configuration once per process."""
    return APIConfig()

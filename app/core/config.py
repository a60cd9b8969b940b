from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    debug: bool = Field(False, alias="DEBUG")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    # Directory of JSON files overriding the built-in reference lists (clients.json, agents.json, ...)
    reference_data_dir: Optional[str] = Field(None, alias="REFERENCE_DATA_DIR")

    class_page_size: int = Field(20, alias="CLASS_PAGE_SIZE")
    class_page_size_max: int = Field(100, alias="CLASS_PAGE_SIZE_MAX")
    upcoming_window_days: int = Field(30, alias="UPCOMING_WINDOW_DAYS")
    export_limit: int = Field(1000, alias="EXPORT_LIMIT")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

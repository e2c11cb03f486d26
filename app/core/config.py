from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    long_token_secret: str = Field(..., alias="LONG_TOKEN_SECRET")
    short_token_secret: str = Field(..., alias="SHORT_TOKEN_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    long_token_expire_days: int = Field(7, alias="LONG_TOKEN_EXPIRE_DAYS")
    short_token_expire_hours: int = Field(24, alias="SHORT_TOKEN_EXPIRE_HOURS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    superadmin_email: Optional[str] = Field(None, alias="SUPERADMIN_EMAIL")
    superadmin_password: Optional[str] = Field(None, alias="SUPERADMIN_PASSWORD")
    superadmin_name: Optional[str] = Field(None, alias="SUPERADMIN_NAME")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

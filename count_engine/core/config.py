# count_engine/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import validator
from typing import Optional


class Settings(BaseSettings):
    """Engine settings loaded from .env"""

    # === Database ===
    DATABASE_URL: str
    DATABASE_TEST_URL: Optional[str] = None
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 30
    DB_POOL_TIMEOUT: int = 60
    DB_POOL_RECYCLE: int = 3600

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and "localhost" in v:
            raise ValueError("🚨 Production environment cannot use localhost database!")
        return v

    # === System ===
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # === Counting ===
    COUNT_BATCH_CHUNK_SIZE: int = 8
    COUNT_BATCH_CHUNK_DELAY_MS: int = 120
    COUNT_BATCH_WRITE_TIMEOUT_SECONDS: float = 30.0
    VARIANCE_EPSILON: float = 0.01

    # === SKU issuance ===
    SKU_DEFAULT_PREFIX: str = "GEN"
    SKU_NUMBER_WIDTH: int = 4

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Create a global settings instance
settings = Settings()

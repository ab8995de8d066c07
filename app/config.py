from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
from typing import Optional, List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "Receipt Analytics Backend"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://localhost:5432/receipt_analytics"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10

    # Firebase
    FIREBASE_SERVICE_ACCOUNT: Optional[str] = None  # JSON string
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None  # File path

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Monthly receipt quotas per plan tier (-1 = unlimited)
    FREE_RECEIPTS_PER_MONTH: int = 10
    BASIC_RECEIPTS_PER_MONTH: int = 100
    PRO_RECEIPTS_PER_MONTH: int = -1
    USAGE_PERIOD_DAYS: int = 30

    # Export formats per plan tier
    FREE_EXPORT_FORMATS: List[str] = ["csv"]
    BASIC_EXPORT_FORMATS: List[str] = ["csv", "pdf"]
    PRO_EXPORT_FORMATS: List[str] = ["csv", "pdf"]

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert postgresql:// to postgresql+asyncpg:// for async support."""
        if v and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Allow extra env variables to be ignored


@lru_cache()
def get_settings() -> Settings:
    return Settings()

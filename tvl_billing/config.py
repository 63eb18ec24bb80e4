from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
from decimal import Decimal
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App Settings
    APP_NAME: str = "TVL Billing Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Billing defaults
    CURRENCY: str = "INR"
    DEFAULT_GST_RATE: Decimal = Decimal("18")  # Applied when a new bill omits gst_rate
    DEFAULT_GST_MODE: str = "EXCLUSIVE"  # EXCLUSIVE or INCLUSIVE

    # Bill numbering: {PREFIX}/{FY}/{SEQUENCE}, e.g. BL/25-26/00001
    BILL_NUMBER_PREFIX: str = "BL"
    BILL_NUMBER_PADDING: int = 5

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @field_validator('DEFAULT_GST_MODE', 'LOG_LEVEL', mode='before')
    @classmethod
    def uppercase(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()

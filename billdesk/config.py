"""Application configuration"""

import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""
    
    # Application
    APP_NAME: str = "BillDesk"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    
    # API
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./billdesk.db")
    
    # Business defaults (what the settings page used to hold per user)
    COMPANY_NAME: str = os.getenv("COMPANY_NAME", "Finora")
    CURRENCY: str = os.getenv("CURRENCY", "INR")
    DATE_FORMAT: str = os.getenv("DATE_FORMAT", "DD/MM/YYYY")
    DEFAULT_TAX_RATE: float = float(os.getenv("DEFAULT_TAX_RATE", "18"))
    DEFAULT_DUE_DAYS: int = int(os.getenv("DEFAULT_DUE_DAYS", "30"))
    BILL_NUMBER_PREFIX: str = os.getenv("BILL_NUMBER_PREFIX", "BILL")
    
    # Bill list behaviour
    REFRESH_INTERVAL_SECONDS: float = float(os.getenv("REFRESH_INTERVAL_SECONDS", "30"))
    STRICT_STATUS_TRANSITIONS: bool = os.getenv("STRICT_STATUS_TRANSITIONS", "False").lower() == "true"
    
    # Import
    MAX_IMPORT_SIZE_MB: int = int(os.getenv("MAX_IMPORT_SIZE_MB", "10"))
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: Optional[str] = os.getenv("LOG_FILE")
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()

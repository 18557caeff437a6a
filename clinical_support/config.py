"""
Configuration settings for the Clinical Decision Support engine
"""
import secrets
from pathlib import Path
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""
    
    # Application
    APP_NAME: str = "Clinical Decision Support & Alerting Engine"
    DEBUG: bool = False
    VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"
    
    # Database
    DATABASE_URL: str = f"sqlite:///{BASE_DIR}/data/clinical_support.db"
    SQL_DEBUG: bool = False
    SEED_DEMO_DATA: bool = True
    
    # Authentication
    JWT_SECRET_KEY: str = secrets.token_urlsafe(32)
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # 8 hours
    
    # Alert feeds
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100
    
    # Audit
    ENABLE_AUDIT_LOGGING: bool = True
    
    class Config:
        env_file = ".env"
        extra = "allow"


settings = Settings()

"""
Configuration management for ReFood
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "ReFood Waste Intelligence"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./refood.db"

    # Security
    SECRET_KEY: str = "dev-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24  # 24 hours

    # Default admin (seeded at startup)
    ADMIN_EMAIL: str = "admin@refood.local"
    ADMIN_PASSWORD: str = "admin123"

    # Data files (daily_food_production.csv, pickup_operations.csv, ...)
    DATA_DIR: str = "./data"

    # Uploads
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10 MB

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:8081",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8081",
    ]

    # Conversion constants (per pound of rescued food)
    MEALS_PER_LB: float = 2.5
    CO2_LBS_PER_LB: float = 3.2
    FOOD_VALUE_PER_LB: float = 1.2

    # Cost of one wasted serving / pound
    WASTE_COST_PER_LB: float = 3.5

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()

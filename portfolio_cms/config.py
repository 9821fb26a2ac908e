"""
Configuration management for the portfolio CMS service.
Uses Pydantic Settings for environment variable management.
"""
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    API_TITLE: str = "Portfolio CMS API"
    API_VERSION: str = "0.1.0"
    API_DESCRIPTION: str = "Content sync service for the portfolio site and its admin dashboard"

    # CORS Configuration
    # Local development ports for the public site and the admin dashboard
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8080",
    ]

    # Database Configuration (Supabase PostgreSQL, postgresql+asyncpg://...)
    DATABASE_URL: str = ""

    # Use in-memory store and blob storage instead of Postgres/Cloudinary
    USE_IN_MEMORY_BACKENDS: bool = False

    # Cloudinary Configuration (blob storage for hero images and portfolio media)
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""

    # Blob buckets (Cloudinary folders)
    HERO_BUCKET: str = "hero-images"
    PORTFOLIO_BUCKET: str = "portfolio-media"

    # Convert image uploads to WebP before storing them
    CONVERT_UPLOADS_TO_WEBP: bool = True

    # JWT Configuration
    # SECRET_KEY should be a long random string (e.g., generated with: openssl rand -hex 32)
    JWT_SECRET_KEY: str = "your-secret-key-change-this-in-production-use-openssl-rand-hex-32"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Admin accounts
    MIN_PASSWORD_LENGTH: int = 6
    LOGIN_PATH: str = "/auth"
    PUBLIC_ROOT_PATH: str = "/"

    # Public views
    HERO_ROTATION_SECONDS: float = 5.0
    NEWS_LIMIT: int = 6
    NEWS_EXCERPT_LENGTH: int = 200

    # Rate limiting (login and contact form)
    RATE_LIMIT_ENABLED: bool = True

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings


# Global settings instance
settings = Settings()

import os
from pathlib import Path
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "Print Home Checkout"

    # Backend API (server-to-server) and the public base used in image URLs
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://nginx")
    PUBLIC_API_BASE_URL: str = os.getenv("NEXT_PUBLIC_API_BASE_URL", "http://localhost:8080")
    BACKEND_TIMEOUT_SECONDS: float = 30.0

    # Flow cookie settings
    SECRET_KEY: str = os.getenv("SECRET_KEY", "supersecretkey")
    ALGORITHM: str = "HS256"
    FLOW_COOKIE_NAME: str = "checkout_flow"
    FLOW_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("FLOW_TOKEN_EXPIRE_MINUTES", 60 * 24))

    # Upload limits, mirrored by the backend
    MAX_IMAGES: int = 20
    MAX_FILE_SIZE_BYTES: int = 10 * 1024 * 1024  # 10MB

    # Storage settings
    STAGING_DIR: Path = Path("staging")
    CUSTOMER_DATA_DIR: Path = Path("staging/customer_data")

    # Cleanup settings
    CLEANUP_INTERVAL_SECONDS: int = 3600  # Run cleanup every hour
    STALE_FLOW_TIMEOUT_SECONDS: int = 86400  # 24 hours

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Create directories if they don't exist
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.STAGING_DIR.mkdir(exist_ok=True, parents=True)
        self.CUSTOMER_DATA_DIR.mkdir(exist_ok=True, parents=True)

# Global settings instance
settings = Settings()

"""
Configuration for the ordering desk.
"""

# Load environment variables FIRST
from dotenv import load_dotenv
load_dotenv()

import os
from typing import Optional


class Config:
    """Base configuration."""

    # Remote storage
    REMOTE_BACKEND: str = os.getenv("REMOTE_BACKEND", "memory")  # memory or supabase
    SUPABASE_URL: Optional[str] = os.getenv("SUPABASE_URL", None)
    SUPABASE_KEY: Optional[str] = os.getenv("SUPABASE_KEY", None)

    # Background sync
    SYNC_OVERLAP_POLICY: str = os.getenv("SYNC_OVERLAP_POLICY", "latest")  # latest or drop

    # Ordering defaults
    DEFAULT_PAYMENT_METHOD: str = "CASH ON DELIVERY"
    DEFAULT_DATA_PATH: str = os.getenv(
        "DEFAULT_DATA_PATH",
        os.path.join(os.path.dirname(__file__), "data", "default_data.json"),
    )

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str = os.getenv("LOG_FILE", "orderdesk.log")  # empty string disables the file handler

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_DEBUG: bool = os.getenv("API_DEBUG", "false").lower() == "true"

    @classmethod
    def validate(cls) -> None:
        """Validate configuration."""
        if cls.REMOTE_BACKEND not in ["memory", "supabase"]:
            raise ValueError(f"Invalid REMOTE_BACKEND: {cls.REMOTE_BACKEND}")

        if cls.REMOTE_BACKEND == "supabase" and not (cls.SUPABASE_URL and cls.SUPABASE_KEY):
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set for the supabase backend")

        if cls.SYNC_OVERLAP_POLICY not in ["latest", "drop"]:
            raise ValueError(f"Invalid SYNC_OVERLAP_POLICY: {cls.SYNC_OVERLAP_POLICY}")


class DevelopmentConfig(Config):
    """Development configuration."""
    LOG_LEVEL = "DEBUG"
    API_DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""
    REMOTE_BACKEND = os.getenv("REMOTE_BACKEND", "supabase")
    LOG_LEVEL = "INFO"
    API_DEBUG = False


class TestConfig(Config):
    """Test configuration."""
    REMOTE_BACKEND = "memory"
    LOG_LEVEL = "DEBUG"
    LOG_FILE = ""


def get_config(env: str = None) -> Config:
    """Get configuration based on environment."""
    if env is None:
        env = os.getenv("ENV", "development").lower()

    if env == "production":
        config = ProductionConfig()
    elif env == "test":
        config = TestConfig()
    else:
        config = DevelopmentConfig()

    # Validate configuration on creation
    config.validate()
    return config

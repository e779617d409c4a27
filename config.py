"""
Configuration settings for the Panorama Rule Audit Engine.
"""
import os
from typing import List

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings."""

    # Application settings
    PROJECT_NAME: str = "Panorama Rule Audit Engine"
    PROJECT_VERSION: str = "1.0.0"
    PROJECT_DESCRIPTION: str = "Audit Panorama security rules for staleness and plan safe remediation"

    # API settings
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"

    # Panorama connection
    PANORAMA_URL: str = os.getenv("PANORAMA_URL", "")
    PANORAMA_API_KEY: str = os.getenv("PANORAMA_API_KEY", "")
    PANORAMA_DEVICE_NAME: str = os.getenv("PANORAMA_DEVICE_NAME", "localhost.localdomain")
    PANORAMA_TIMEOUT: int = int(os.getenv("PANORAMA_TIMEOUT", "60"))

    # Audit defaults
    DEFAULT_UNUSED_DAYS: int = int(os.getenv("DEFAULT_UNUSED_DAYS", "90"))
    DEFAULT_DISABLED_DAYS: int = int(os.getenv("DEFAULT_DISABLED_DAYS", "90"))
    PROTECT_TAG: str = os.getenv("PROTECT_TAG", "PROTECT")
    SHARED_DEVICE_GROUP: str = os.getenv("SHARED_DEVICE_GROUP", "shared")

    # Remediation is refused unless explicitly enabled
    PRODUCTION_MODE: bool = os.getenv("PRODUCTION_MODE", "False").lower() == "true"

    # Security settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost",
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1",
        "http://127.0.0.1:5173"
    ]


settings = Settings()

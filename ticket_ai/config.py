"""
Assistant Service Configuration
Loads settings from environment variables
"""

import os
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment"""

    # Generation backend (OpenAI-compatible endpoint, Gemini by default)
    GENERATION_API_KEYS: str = os.getenv("GENERATION_API_KEYS", "")
    GENERATION_MODEL: str = os.getenv("GENERATION_MODEL", "gemini-2.0-flash")
    GENERATION_BASE_URL: str = os.getenv(
        "GENERATION_BASE_URL",
        "https://generativelanguage.googleapis.com/v1beta/openai/"
    )
    GENERATION_TIMEOUT: float = float(os.getenv("GENERATION_TIMEOUT", "30"))

    # Storefront data API
    DATA_API_BASE_URL: str = os.getenv("DATA_API_BASE_URL", "http://localhost:3000/api")
    DATA_API_TIMEOUT: float = float(os.getenv("DATA_API_TIMEOUT", "10"))

    # Redis (optional, pending-action storage)
    REDIS_URL: str = os.getenv("REDIS_URL", "")

    # Cache & knowledge freshness (seconds)
    SEARCH_CACHE_TTL: int = int(os.getenv("SEARCH_CACHE_TTL", "300"))
    CACHE_SWEEP_INTERVAL: int = int(os.getenv("CACHE_SWEEP_INTERVAL", "300"))
    KNOWLEDGE_MAX_AGE: int = int(os.getenv("KNOWLEDGE_MAX_AGE", "60"))

    # Conversation
    CONVERSATION_WINDOW: int = int(os.getenv("CONVERSATION_WINDOW", "3"))
    MAX_SUGGESTIONS: int = int(os.getenv("MAX_SUGGESTIONS", "4"))

    # API Configuration
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))
    API_ENV: str = os.getenv("API_ENV", "development")

    # CORS Configuration
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def api_keys_list(self) -> List[str]:
        """Get generation credentials as an ordered list"""
        return [key.strip() for key in self.GENERATION_API_KEYS.split(",") if key.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]


# Global settings instance
settings = Settings()

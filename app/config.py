# app/config.py
from typing import List
from pydantic_settings import BaseSettings
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    # Identity provider configuration
    SUPABASE_URL: str = ""
    SUPABASE_KEY: str = ""
    AUTH_JWT_SECRET: str
    AUTH_JWT_AUDIENCE: str = "authenticated"

    # Database
    DATABASE_URL: str = "sqlite:///./property_chat.db"

    # API configuration
    API_PREFIX: str = "/api"
    CORS_ORIGINS: List[str] = ["*"]

    # Chat configuration
    CHAT_HISTORY_LIMIT: int = 50
    CHAT_HISTORY_MAX_LIMIT: int = 200

    # Realtime hub
    REALTIME_HISTORY_SIZE: int = 100

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()

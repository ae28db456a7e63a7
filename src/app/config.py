from __future__ import annotations

from typing import Optional

from pydantic import AnyUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8-sig",
        case_sensitive=False,
        extra="ignore",
    )

    SUPABASE_URL: Optional[AnyUrl] = None
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[SecretStr] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    ANAM_API_KEY: Optional[SecretStr] = None
    ANAM_AVATAR_ID: Optional[str] = None
    ANAM_API_URL: str = "https://api.anam.ai"
    ELEVENLABS_AGENT_ID: Optional[str] = None
    APP_ENV: str = "local"
    FRONTEND_CORS_ORIGINS: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"],
    )

    @property
    def exposes_error_details(self) -> bool:
        return self.APP_ENV.lower() in {"local", "development", "dev"}


settings = Settings()

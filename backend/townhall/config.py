from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "townhall-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Townhall")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Hosted backend (table + RPC API)
    backend_url: str = os.getenv("BACKEND_URL", "http://localhost:54321")
    backend_api_key: str = os.getenv("BACKEND_API_KEY", "")
    backend_timeout_seconds: float = float(os.getenv("BACKEND_TIMEOUT_SECONDS", "15"))

    # Access tokens are issued by the backend's auth service
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_audience: str = os.getenv("JWT_AUDIENCE", "authenticated")

    # Voting rules mirrored for optimistic display; the backend stays authoritative
    weekly_vote_limit: int = int(os.getenv("WEEKLY_VOTE_LIMIT", "10"))
    weekly_reset_weekday: int = int(os.getenv("WEEKLY_RESET_WEEKDAY", "0"))  # 0=Monday
    weekly_reset_hour: int = int(os.getenv("WEEKLY_RESET_HOUR", "0"))  # UTC
    ending_soon_days: int = int(os.getenv("ENDING_SOON_DAYS", "7"))
    vote_timeout_seconds: float = float(os.getenv("VOTE_TIMEOUT_SECONDS", "10"))

    # Per-viewer view cache
    session_cache_size: int = int(os.getenv("SESSION_CACHE_SIZE", "1024"))

settings = Settings()

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Application Configuration
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    client_url: str = "http://localhost:5173"
    log_level: str = "INFO"

    # Database Configuration
    database_url: str = "sqlite:///./interview_rooms.db"

    # Stream (video + chat) Configuration
    stream_api_key: str = ""
    stream_api_secret: str = ""
    stream_chat_base_url: str = "https://chat.stream-io-api.com"
    stream_video_base_url: str = "https://video.stream-io-api.com"
    stream_timeout_seconds: float = 10.0

    # Identity provider webhook
    webhook_secret: str = ""

    # Session listing
    session_list_limit: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

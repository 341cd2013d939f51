"""
Application configuration management.
Centralizes all configuration settings for the transcript service.
"""

import os
import sys
import tempfile
from pathlib import Path
from pydantic_settings import BaseSettings


def get_app_data_dir() -> Path:
    """Get persistent application data directory."""
    if getattr(sys, 'frozen', False):
        # Production: %APPDATA%/PostTranscriptGenerator
        app_data = Path(os.getenv('APPDATA', os.path.expanduser('~'))) / "PostTranscriptGenerator"
        app_data.mkdir(parents=True, exist_ok=True)
        return app_data
    # Development: Project root
    return Path(__file__).parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Post Transcript Generator"
    version: str = "1.0.0"
    debug: bool = False

    # Paths
    base_dir: Path = get_app_data_dir()
    temp_dir: Path = Path(tempfile.gettempdir())
    credential_file: Path = base_dir / "credential.json"

    # Video extraction (RapidAPI is optional, yt-dlp is the fallback)
    rapidapi_key: str = ""
    extractor_timeout_seconds: float = 10.0
    download_timeout_seconds: float = 60.0
    max_video_size_mb: int = 25

    # Transcription (OpenAI Whisper API, key supplied by the user)
    openai_model: str = "whisper-1"
    openai_timeout_seconds: float = 120.0
    openai_max_retries: int = 2

    # Queue (0 = unbounded)
    max_pending_jobs: int = 0

    # GitHub repository stats
    github_token: str = ""
    github_owner: str = "prophesourvolodymyr"
    github_repo: str = "GigaTrasscript"
    github_cache_seconds: int = 300

    # Server
    host: str = "127.0.0.1" # Standardized to localhost for safety
    port: int = 8081
    cors_origins: list[str] = ["*"]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

# Ensure directories exist
settings.temp_dir.mkdir(parents=True, exist_ok=True)

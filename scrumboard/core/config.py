# scrumboard/core/config.py
import os
from dotenv import load_dotenv

load_dotenv()  # load from .env

class Settings:
    GITHUB_CLIENT_ID: str = os.getenv("GITHUB_CLIENT_ID", "")
    GITHUB_CLIENT_SECRET: str = os.getenv("GITHUB_CLIENT_SECRET", "")
    GITHUB_OAUTH_CALLBACK_URL: str = os.getenv("GITHUB_OAUTH_CALLBACK_URL", "")
    GITHUB_OAUTH_SCOPES: str = os.getenv("GITHUB_OAUTH_SCOPES", "repo read:user")

    GITHUB_API_URL: str = os.getenv("GITHUB_API_URL", "https://api.github.com")
    GITHUB_OAUTH_URL: str = os.getenv("GITHUB_OAUTH_URL", "https://github.com/login/oauth")

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./scrumboard.db")

    # Comma-separated; the frontend origin in deployments
    CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

    # Issue-event stream is read as a single page
    CLOSED_EVENTS_PAGE_SIZE: int = int(os.getenv("CLOSED_EVENTS_PAGE_SIZE", "100"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON: bool = os.getenv("LOG_JSON", "").lower() in ("1", "true", "yes")

settings = Settings()

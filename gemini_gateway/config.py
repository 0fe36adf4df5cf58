import os
from dataclasses import dataclass

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
ENV_PATH = os.path.join(os.path.dirname(BASE_DIR), ".env")

PLACEHOLDER_API_KEY = "YOUR_API_KEY_HERE"
DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1/models"


def load_env(path=ENV_PATH):
    """Load .env values without overriding variables already set in the environment."""
    if os.path.exists(path):
        load_dotenv(path, override=False)
    # Also honour a .env in the working directory when running from elsewhere.
    load_dotenv(override=False)


def _env_flag(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def _env_int(name, default):
    try:
        return int(os.getenv(name, "").strip())
    except ValueError:
        return default


def _env_float(name, default):
    try:
        return float(os.getenv(name, "").strip())
    except ValueError:
        return default


@dataclass
class Settings:
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_MODEL
    gemini_base_url: str = DEFAULT_BASE_URL
    gemini_timeout: int = 60
    database_path: str = os.path.join("data", "gateway.db")
    upload_dir: str = os.path.join("data", "uploads")
    batch_delay_seconds: float = 1.0
    log_level: str = "INFO"
    port: int = 8081
    debug: bool = False

    @property
    def api_key_configured(self):
        key = (self.gemini_api_key or "").strip()
        return bool(key) and key != PLACEHOLDER_API_KEY


def load_settings():
    """Build Settings from the process environment (after .env loading)."""
    load_env()
    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
        gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL,
        gemini_base_url=os.getenv("GEMINI_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
        gemini_timeout=_env_int("GEMINI_TIMEOUT", 60),
        database_path=os.getenv("DATABASE_PATH", os.path.join("data", "gateway.db")),
        upload_dir=os.getenv("UPLOAD_DIR", os.path.join("data", "uploads")),
        batch_delay_seconds=_env_float("BATCH_DELAY_SECONDS", 1.0),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        port=_env_int("PORT", 8081),
        debug=_env_flag("FLASK_DEBUG"),
    )

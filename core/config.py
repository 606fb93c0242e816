# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
import logging

# Load variables from .env file located in the project root directory
dotenv_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env')
if os.path.exists(dotenv_path):
    load_dotenv(dotenv_path=dotenv_path)
else:
    load_dotenv() # Fallback

class Settings(BaseSettings):
    """Loads configuration settings from environment variables and .env file."""

    # --- Supabase Configuration ---
    SUPABASE_URL: str | None = None
    SUPABASE_KEY: str | None = None # ANON key, used for per-user sessions
    SUPABASE_SERVICE_KEY: str | None = None # SERVICE_ROLE key, only for bucket setup

    # --- Service URLs ---
    UI_SERVICE_URL: str = "http://localhost:7860"

    # --- Storage Configuration ---
    STORAGE_BUCKET: str = "files"
    MAX_UPLOAD_SIZE_BYTES: int = 50 * 1024 * 1024
    UPLOAD_CACHE_CONTROL: str = "3600"
    FILE_LIST_LIMIT: int = 100
    STATS_LIST_LIMIT: int = 1000
    STORAGE_QUOTA_BYTES: int = 5 * 1024 * 1024 * 1024

    # --- Dashboard Behaviour ---
    RECENT_UPLOAD_DAYS: int = 7
    MIN_PASSWORD_LENGTH: int = 6

    class Config:
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instantiate settings once for import
settings = Settings()

# --- Logging Setup ---
log_level_str = os.getenv("LOG_LEVEL", "INFO").upper(); log_level = getattr(logging, log_level_str, logging.INFO)
logging.basicConfig(level=log_level, format='%(asctime)s - %(name)s - [%(levelname)s] - %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
logger = logging.getLogger("CloudStore_Core")
logging.getLogger("httpx").setLevel(logging.WARNING); logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("supabase").setLevel(logging.WARNING)

# --- Configuration Validation Checks ---
logger.info(f"Core Settings loaded. Log Level: {log_level_str}")
if not settings.SUPABASE_URL or not settings.SUPABASE_KEY: logger.warning("Supabase URL/Key missing. Sign-in and storage calls will fail.")
if not settings.SUPABASE_SERVICE_KEY: logger.warning("Supabase Service Key missing. Storage bucket setup will be skipped.")
if not settings.STORAGE_BUCKET: logger.warning("STORAGE_BUCKET missing, using default.")
else: logger.info(f"Using Supabase Storage Bucket: {settings.STORAGE_BUCKET}")

try: assert settings.MAX_UPLOAD_SIZE_BYTES > 0; logger.info(f"Max upload size: {settings.MAX_UPLOAD_SIZE_BYTES} bytes")
except AssertionError: logger.error(f"Invalid MAX_UPLOAD_SIZE_BYTES: {settings.MAX_UPLOAD_SIZE_BYTES}.")
logger.info(f"Listing Config: File List Limit={settings.FILE_LIST_LIMIT}, Stats List Limit={settings.STATS_LIST_LIMIT}")

from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path

# Project root (parent of the loan_tracker package)
PROJECT_DIR = Path(__file__).parent.parent
ENV_FILE = PROJECT_DIR / ".env"

class Settings(BaseSettings):
    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # Database settings - any SQLAlchemy URL (postgresql://..., sqlite:///...)
    database_url: str = "sqlite:///./loans.db"
    db_echo: bool = False

    # Session settings - secret is confidential, no default
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 1440
    session_cookie_name: str = "session_token"
    session_cookie_secure: bool = False

    # Blob storage for loan photos
    upload_dir: str = "./uploads/loans"
    upload_url_prefix: str = "/uploads/loans"
    max_upload_bytes: int = 5 * 1024 * 1024
    serve_uploads: bool = True

    # Reject return_by < borrowed_at and returned_at < borrowed_at
    enforce_chronology: bool = True

    # Login throttling, per (email, client ip)
    login_max_attempts: int = 5
    login_window_seconds: int = 60
    login_block_seconds: int = 300

    # bcrypt cost; lower it only for tests
    bcrypt_rounds: Optional[int] = None

    class Config:
        env_file = str(ENV_FILE) if ENV_FILE.exists() else ".env"
        case_sensitive = False

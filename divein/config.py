from pydantic_settings import BaseSettings, SettingsConfigDict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import uuid4
from jose import jwt

class Settings(BaseSettings):
    app_name: str = "DiveIn"
    app_version: str = "1.0.0"
    debug: bool = True
    log_level: str = "INFO"

    mongo_uri: str
    mongo_db_name: str

    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60
    refresh_token_expire_days: int = 7

    password_min_length: int = 6
    password_reset_expire_minutes: int = 60

    frontend_url: str = "http://localhost:5173"
    allowed_origins: str = "*"

    # Hide opportunities whose expires_at has passed from public listings
    enforce_expiry: bool = True

    # SMTP
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_email: Optional[str] = None
    smtp_from_name: str = "DiveIn"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
# -----------------------
# JWT configuration
# -----------------------
JWT_SECRET = settings.jwt_secret_key
JWT_ALGORITHM = settings.jwt_algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = settings.access_token_expire_minutes  # minutes
REFRESH_TOKEN_EXPIRE_DAYS = settings.refresh_token_expire_days

if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET_KEY must be set in environment")

def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def _encode(data: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    to_encode = data.copy()
    now = _now_utc()
    to_encode.update({"iat": now, "exp": now + lifetime, "type": token_type, "jti": str(uuid4())})
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)

def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, "access", expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

def create_refresh_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(data, "refresh", expires_delta or timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))

def decode_token(token: str) -> Dict[str, Any]:
    """Decode and verify a token. Raises jose.JWTError when invalid or expired."""
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])

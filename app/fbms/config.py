import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str

    data_backend: str
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str
    database_url: str
    store_timeout_seconds: float

    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    app_users: str
    admin_email: str
    admin_password: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getfloat(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        data_backend=_getenv("DATA_BACKEND", "supabase").lower(),
        supabase_url=_getenv("SUPABASE_URL", ""),
        supabase_anon_key=_getenv("SUPABASE_ANON_KEY", ""),
        supabase_service_role_key=_getenv("SUPABASE_SERVICE_ROLE_KEY", ""),
        database_url=_getenv("DATABASE_URL", "sqlite:///fbms.db"),
        store_timeout_seconds=_getfloat("STORE_TIMEOUT_SECONDS", 30.0),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_root=_getenv("STORAGE_ROOT", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        app_users=_getenv("APP_USERS", ""),
        admin_email=_getenv("ADMIN_EMAIL", "").lower(),
        admin_password=os.environ.get("ADMIN_PASSWORD") or "",
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATA_BACKEND": s.data_backend,
        "SUPABASE_URL": s.supabase_url,
        # The web app prefers the service key when one is configured (server-side only).
        "SUPABASE_KEY": s.supabase_service_role_key or s.supabase_anon_key,
        "DATABASE_URL": s.database_url,
        "STORE_TIMEOUT_SECONDS": s.store_timeout_seconds,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_ROOT": s.storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "APP_USERS": s.app_users,
        "ADMIN_EMAIL": s.admin_email,
        "ADMIN_PASSWORD": s.admin_password,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,
        # document uploads (10MB per file, enforced in the upload handler)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
        "MAX_DOCUMENT_BYTES": 10 * 1024 * 1024,
    }

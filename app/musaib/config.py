import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    # Trusted header set by the upstream auth provider with the profile id.
    auth_user_header: str

    storage_backend: str
    storage_public_base_url: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///musaib.db"),
        auth_user_header=_getenv("AUTH_USER_HEADER", "X-Authenticated-User"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_public_base_url=_getenv("STORAGE_PUBLIC_BASE_URL", "/storage"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "fra1"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "AUTH_USER_HEADER": s.auth_user_header,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_PUBLIC_BASE_URL": s.storage_public_base_url,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        # justification documents (PDF, PNG, JPG) are capped at 10MB each
        "MAX_CONTENT_LENGTH": 10 * 1024 * 1024,
    }

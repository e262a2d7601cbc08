import os
import tempfile
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    server_root: str
    temp_dir: str
    install_id: str
    etemplate_max_age: int

    cache_backend: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///egw.db"),
        server_root=_getenv("SERVER_ROOT", os.getcwd()),
        temp_dir=_getenv("TEMP_DIR", tempfile.gettempdir()),
        install_id=_getenv("INSTALL_ID", "default"),
        etemplate_max_age=_getenv_int("ETEMPLATE_MAX_AGE", 86400),
        cache_backend=_getenv("CACHE_BACKEND", "local"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
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
        "SERVER_ROOT": s.server_root,
        "TEMP_DIR": s.temp_dir,
        "INSTALL_ID": s.install_id,
        # one day, the client forces a reload by putting the etag into the url
        "ETEMPLATE_MAX_AGE": s.etemplate_max_age,
        "CACHE_BACKEND": s.cache_backend,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
    }

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


class StorageError(RuntimeError):
    pass


class Storage:
    """Flat blob store for transformed templates, keyed by cache key."""

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def get_bytes(self, key: str) -> bytes:
        raise NotImplementedError

    def mtime(self, key: str) -> float | None:
        """Modification time as a unix timestamp, None if the key does not exist."""
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        return self.root / safe_key

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self._path(key)
        try:
            p.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
            p.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Cannot write {p}: {e}") from e

    def get_bytes(self, key: str) -> bytes:
        p = self._path(key)
        try:
            return p.read_bytes()
        except OSError as e:
            raise StorageError(f"Cannot read {p}: {e}") from e

    def mtime(self, key: str) -> float | None:
        p = self._path(key)
        try:
            return p.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot stat {p}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete {self._path(key)}: {e}") from e


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        try:
            import boto3  # type: ignore
        except Exception as e:  # pragma: no cover
            raise StorageError("boto3 required for S3 storage. Install boto3.") from e
        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        extra: dict[str, object] = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cannot write s3://{self.bucket}/{key}: {e}") from e

    def get_bytes(self, key: str) -> bytes:
        try:
            obj = self._client().get_object(Bucket=self.bucket, Key=key)
            return obj["Body"].read()
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cannot read s3://{self.bucket}/{key}: {e}") from e

    def mtime(self, key: str) -> float | None:
        try:
            head = self._client().head_object(Bucket=self.bucket, Key=key)
        except StorageError:
            raise
        except Exception:
            return None
        return head["LastModified"].timestamp()

    def delete(self, key: str) -> None:
        try:
            self._client().delete_object(Bucket=self.bucket, Key=key)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cannot delete s3://{self.bucket}/{key}: {e}") from e


def storage_from_config(config: dict) -> Storage:
    backend = (config.get("CACHE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "nyc3").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    # default local, below the temp dir like any other server-side cache
    root = Path(config.get("TEMP_DIR") or os.getcwd())
    return LocalStorage(root=root)

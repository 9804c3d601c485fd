"""
Storage abstraction for S3-compatible object storage and in-memory testing.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Iterator, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from visionboard.errors import BackendError, NotFound

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class StorageClient(Protocol):
    """Defines the operations the adapters need from object storage."""

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        ...

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
    ) -> None:
        ...

    def get_bytes(self, path: str) -> bytes:
        ...

    def delete(self, path: str) -> None:
        ...

    def list_paths(self, prefix: str = "") -> list[str]:
        ...


@dataclass
class StoredObject:
    data: bytes
    content_type: str
    cache_control: Optional[str] = None


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict[str, StoredObject] = field(default_factory=dict)

    def __post_init__(self):
        self._lock = Lock()

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        return f"{self.base_url}/{path}?op=get&expires={expires_in}"

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
    ) -> None:
        with self._lock:
            # Upsert semantics, matching the hosted bucket configuration.
            self.stored_objects[path] = StoredObject(
                data=bytes(data),
                content_type=content_type,
                cache_control=cache_control,
            )

    def get_bytes(self, path: str) -> bytes:
        with self._lock:
            stored = self.stored_objects.get(path)
        if stored is None:
            raise NotFound(f"Object not found: {path}")
        return stored.data

    def delete(self, path: str) -> None:
        with self._lock:
            self.stored_objects.pop(path, None)

    def list_paths(self, prefix: str = "") -> list[str]:
        with self._lock:
            return sorted(p for p in self.stored_objects if p.startswith(prefix))

    def reset(self) -> None:
        """Drop every stored object (useful in tests)."""
        with self._lock:
            self.stored_objects.clear()


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client (Supabase Storage, AWS S3, MinIO, COS).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    addressing_style: str = "path"

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": self.addressing_style},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    @contextmanager
    def _translate_errors(self, path: str) -> Iterator[None]:
        try:
            yield
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_KEY_CODES:
                raise NotFound(f"Object not found: {path}") from exc
            raise BackendError(f"Storage request failed for {path}: {code}") from exc
        except BotoCoreError as exc:
            raise BackendError(f"Storage request failed for {path}: {exc}") from exc

    def presign_get(self, path: str, expires_in: int = 3600) -> str:
        with self._translate_errors(path):
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=expires_in,
            )

    def upload_bytes(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
        cache_control: Optional[str] = None,
    ) -> None:
        params = {
            "Bucket": self.bucket,
            "Key": path,
            "Body": data,
            "ContentType": content_type,
        }
        if cache_control:
            params["CacheControl"] = cache_control
        with self._translate_errors(path):
            self._client.put_object(**params)

    def get_bytes(self, path: str) -> bytes:
        with self._translate_errors(path):
            response = self._client.get_object(Bucket=self.bucket, Key=path)
            return response["Body"].read()

    def delete(self, path: str) -> None:
        with self._translate_errors(path):
            self._client.delete_object(Bucket=self.bucket, Key=path)

    def list_paths(self, prefix: str = "") -> list[str]:
        paths: list[str] = []
        with self._translate_errors(prefix or "/"):
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    paths.append(item["Key"])
        return paths

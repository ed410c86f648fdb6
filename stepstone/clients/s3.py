"""S3-compatible object store client on boto3."""

from __future__ import annotations

from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from stepstone.config.models import S3Config
from stepstone.core.logging import logger as LOGGER


class S3Client:
    """Object store adapter scoped to one bucket and root prefix."""

    def __init__(self, config: S3Config, *, timeout_s: float = 10.0) -> None:
        self.config = config
        self._root = config.root.strip("/")
        self._timeout_s = timeout_s
        self._client: Any | None = None

    def connect(self) -> None:
        """Build the boto3 client; raises on malformed endpoint or region values."""

        session = boto3.session.Session()
        self._client = session.client(
            "s3",
            endpoint_url=self.config.endpoint,
            region_name=self.config.region,
            aws_access_key_id=self.config.access_key_id,
            aws_secret_access_key=self.config.secret_access_key,
            config=BotoConfig(
                connect_timeout=self._timeout_s,
                read_timeout=self._timeout_s,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )
        LOGGER.debug(
            "S3 client ready for bucket %s (endpoint=%s)",
            self.config.bucket,
            self.config.endpoint or "default",
        )

    def list(self, prefix: str = "") -> list[str]:
        response = self._require().list_objects_v2(
            Bucket=self.config.bucket,
            Prefix=self._full_key(prefix) if prefix else (f"{self._root}/" if self._root else ""),
            MaxKeys=1,
        )
        return [item["Key"] for item in response.get("Contents", [])]

    def write(self, key: str, data: bytes) -> None:
        self._require().put_object(Bucket=self.config.bucket, Key=self._full_key(key), Body=data)

    def read(self, key: str) -> bytes:
        response = self._require().get_object(Bucket=self.config.bucket, Key=self._full_key(key))
        body = response["Body"]
        try:
            return body.read()
        finally:
            body.close()

    def delete(self, key: str) -> None:
        self._require().delete_object(Bucket=self.config.bucket, Key=self._full_key(key))

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _full_key(self, key: str) -> str:
        key = key.lstrip("/")
        return f"{self._root}/{key}" if self._root else key

    def _require(self) -> Any:
        if self._client is None:
            self.connect()
        return self._client

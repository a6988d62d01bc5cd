"""
AWS S3 adapter — source fetch, derivative writes and metadata reads.

One S3ObjectStore wraps one open aioboto3 client; the Lambda entry opens the
client per invocation and closes it when the pipeline finishes.
"""
from __future__ import annotations

import logging
import urllib.parse
from typing import Any

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from imaging.config import Settings
from imaging.constants import CACHE_CONTROL
from imaging.exceptions import (
    ObjectMetadataUnavailable,
    SourceFetchFailed,
    WriteFailed,
)

logger = logging.getLogger(__name__)


def s3_session(settings: Settings) -> aioboto3.Session:
    # Empty credentials fall through to the Lambda execution role
    return aioboto3.Session(
        aws_access_key_id=settings.aws_access_key_id or None,
        aws_secret_access_key=settings.aws_secret_access_key or None,
        region_name=settings.aws_region,
    )


def _error_message(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        return error.get("Message") or error.get("Code") or str(exc)
    return str(exc)


class S3ObjectStore:
    def __init__(
        self,
        client: Any,
        *,
        bucket: str,
        region: str,
        cdn_base_url: str = "",
    ) -> None:
        self._client = client
        self.bucket = bucket
        self.region = region
        self.cdn_base_url = cdn_base_url.rstrip("/")

    async def head_metadata(self, key: str) -> dict[str, str]:
        """Return the user metadata of ``key`` (S3 lower-cases metadata names)."""
        try:
            response = await self._client.head_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise ObjectMetadataUnavailable(key, _error_message(exc)) from exc
        return dict(response.get("Metadata") or {})

    async def get_object(self, key: str) -> bytes:
        try:
            response = await self._client.get_object(Bucket=self.bucket, Key=key)
            async with response["Body"] as stream:
                return await stream.read()
        except (BotoCoreError, ClientError) as exc:
            raise SourceFetchFailed(_error_message(exc)) from exc

    async def put_object(
        self,
        key: str,
        body: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        params: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": content_type,
            "CacheControl": CACHE_CONTROL,
        }
        if metadata:
            params["Metadata"] = metadata
        try:
            await self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise WriteFailed(key, _error_message(exc)) from exc
        logger.info("Uploaded s3://%s/%s (%d bytes)", self.bucket, key, len(body))

    def public_url(self, key: str) -> str:
        """CDN URL when a CDN domain is configured, otherwise the S3 object URL."""
        quoted = urllib.parse.quote(key)
        if self.cdn_base_url:
            return f"{self.cdn_base_url}/{quoted}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quoted}"

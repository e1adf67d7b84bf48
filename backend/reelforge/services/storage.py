"""Durable artifact storage on S3-compatible object storage (AWS S3, Cloudflare R2).

Generated videos are stored under:
  videos/{owner_id}/{job_id}.mp4

Downloads stream through httpx into a spooled temp file; the blocking boto3
calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
from dataclasses import dataclass
from typing import Protocol

import boto3
import httpx
from botocore.config import Config as BotoConfig

from reelforge.config import Settings

logger = logging.getLogger(__name__)

_SPOOL_MAX_BYTES = 32 * 1024 * 1024


@dataclass(frozen=True)
class DurableRef:
    """Stable pointer to a migrated artifact."""

    key: str
    url: str | None = None


class ArtifactStorage(Protocol):
    """Storage collaborator contract consumed by the migration trigger and downloads."""

    async def ingest_from_url(self, source_url: str, owner_id: str, job_id: str) -> DurableRef:
        ...

    async def sign_download_url(self, key: str, ttl_seconds: int) -> str:
        ...


def video_key(owner_id: str, job_id: str) -> str:
    """Object key for a job's migrated video."""
    return f"videos/{owner_id}/{job_id}.mp4"


class S3Storage:
    """ArtifactStorage backed by boto3."""

    def __init__(
        self,
        *,
        bucket: str,
        client=None,
        public_url: str = "",
        http_client: httpx.AsyncClient | None = None,
        download_timeout: float = 120.0,
    ) -> None:
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self._s3 = client
        self._http_client = http_client
        self.download_timeout = download_timeout

    @classmethod
    def from_settings(
        cls, settings: Settings, http_client: httpx.AsyncClient | None = None
    ) -> "S3Storage":
        client = boto3.client(
            "s3",
            endpoint_url=settings.S3_ENDPOINT_URL or None,
            aws_access_key_id=settings.S3_ACCESS_KEY_ID or None,
            aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY or None,
            config=BotoConfig(signature_version="s3v4"),
            region_name=settings.S3_REGION,
        )
        return cls(
            bucket=settings.S3_BUCKET,
            client=client,
            public_url=settings.S3_PUBLIC_URL,
            http_client=http_client,
        )

    async def ingest_from_url(self, source_url: str, owner_id: str, job_id: str) -> DurableRef:
        key = video_key(owner_id, job_id)

        with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_BYTES) as buffer:
            size = await self._download(source_url, buffer)
            buffer.seek(0)
            await asyncio.to_thread(
                self._s3.upload_fileobj,
                buffer,
                self.bucket,
                key,
                ExtraArgs={"ContentType": "video/mp4"},
            )

        url = f"{self.public_url}/{key}" if self.public_url else None
        logger.info("Migrated job %s to s3://%s/%s (%d bytes)", job_id, self.bucket, key, size)
        return DurableRef(key=key, url=url)

    async def sign_download_url(self, key: str, ttl_seconds: int) -> str:
        return await asyncio.to_thread(
            self._s3.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=ttl_seconds,
        )

    async def _download(self, url: str, buffer) -> int:
        """Stream a provider-hosted file into `buffer`, return its size."""
        client = self._http_client or httpx.AsyncClient(timeout=self.download_timeout)
        own_client = self._http_client is None

        size = 0
        try:
            async with client.stream("GET", url, follow_redirects=True) as response:
                response.raise_for_status()
                async for chunk in response.aiter_bytes(chunk_size=65536):
                    buffer.write(chunk)
                    size += len(chunk)
        finally:
            if own_client:
                await client.aclose()
        return size

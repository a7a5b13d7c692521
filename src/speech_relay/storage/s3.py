"""
S3-compatible object store (AWS S3, MinIO, Supabase Storage S3 API, R2...).

Credentials come from the standard boto3 chain (AWS_ACCESS_KEY_ID,
AWS_SECRET_ACCESS_KEY, profiles, instance roles). storage.endpoint_url
points the client at a non-AWS provider.

boto3 is synchronous, so every call runs in a worker thread via
asyncio.to_thread to keep the event loop free.

Lookup semantics:
    head_object 404        -> None (cache miss)
    any other client error -> CacheLookupError
    object present         -> presigned GET URL valid for ttl_seconds
"""
from __future__ import annotations

import asyncio
from typing import Any, AsyncIterable, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from speech_relay.core.errors import CacheLookupError, PersistenceError
from speech_relay.core.logging import get_logger, verbose
from speech_relay.storage.base import ObjectStore, read_all
from speech_relay.utils.timeit import timeit

_LOG = get_logger("speech-relay.storage.s3")

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class S3ObjectStore(ObjectStore):
    """
    Object store backed by an S3 bucket.

    Args:
        bucket: Bucket name.
        region: AWS region (None lets boto3 resolve it).
        endpoint_url: Custom endpoint for S3-compatible providers.
        client: Pre-built boto3 S3 client (tests inject a mock here).
    """

    name = "s3"

    def __init__(
        self,
        bucket: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ):
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
        )

    @property
    def bucket(self) -> str:
        return self._bucket

    async def get_signed_url(self, name: str, ttl_seconds: int) -> Optional[str]:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self._bucket, Key=name)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return None
            raise CacheLookupError(
                "Artifact store unavailable",
                details={"name": name, "code": code, "error": str(e)},
            ) from e
        except BotoCoreError as e:
            raise CacheLookupError(
                "Artifact store unavailable",
                details={"name": name, "error": str(e)},
            ) from e

        try:
            return await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self._bucket, "Key": name},
                ExpiresIn=int(ttl_seconds),
            )
        except (ClientError, BotoCoreError) as e:
            raise CacheLookupError(
                "Could not sign artifact URL",
                details={"name": name, "error": str(e)},
            ) from e

    async def put(self, name: str, chunks: AsyncIterable[bytes], content_type: str) -> int:
        # put_object needs the full body; artifacts are a few hundred KB at most
        data = await read_all(chunks)
        with timeit("s3_put") as t:
            try:
                await asyncio.to_thread(
                    self._client.put_object,
                    Bucket=self._bucket,
                    Key=name,
                    Body=data,
                    ContentType=content_type,
                )
            except (ClientError, BotoCoreError) as e:
                raise PersistenceError(
                    "Failed to upload artifact",
                    details={"name": name, "bucket": self._bucket, "error": str(e)},
                ) from e
        verbose(_LOG, "artifact_uploaded", key=name[:8], bytes=len(data), seconds=round(t.seconds, 4))
        return len(data)

    async def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            await asyncio.to_thread(close)

    def info(self) -> Dict[str, Any]:
        return {
            "backend": self.name,
            "bucket": self._bucket,
            "region": self._region,
            "endpoint_url": self._endpoint_url,
        }

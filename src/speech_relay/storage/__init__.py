"""
Artifact storage for speech-relay.

    - keys.py: Cache key digest and "<digest>.mp3" naming
    - base.py: ObjectStore interface (put / get_signed_url)
    - local.py: Filesystem bucket with HMAC-signed URLs
    - s3.py: S3-compatible bucket via boto3

create_store() picks the backend from StorageConfig.
"""
from __future__ import annotations

from speech_relay.core.config import StorageConfig
from speech_relay.storage.base import ObjectStore
from speech_relay.storage.keys import AUDIO_CONTENT_TYPE, make_key, object_name


def create_store(config: StorageConfig) -> ObjectStore:
    """Build the configured object store."""
    if config.backend == "s3":
        from speech_relay.storage.s3 import S3ObjectStore
        return S3ObjectStore(
            bucket=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
        )

    from speech_relay.storage.local import LocalObjectStore
    return LocalObjectStore(
        base_dir=config.base_dir,
        bucket=config.bucket,
        public_base_url=config.public_base_url,
        signing_secret=config.signing_secret,
        ttl_seconds=config.ttl_seconds,
        cleanup_interval_s=config.cleanup_interval_s,
    )


__all__ = [
    "AUDIO_CONTENT_TYPE",
    "ObjectStore",
    "create_store",
    "make_key",
    "object_name",
]

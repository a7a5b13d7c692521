"""
Local filesystem object store.

Artifacts live flat under {base_dir}/{bucket}/:

    ./storage/audio/
        3f1c...e9.mp3
        a70b...42.mp3

Signed URLs point back at this service:

    {public_base_url}/v1/artifacts/{name}?expires=1767225600&signature=<hex>

where signature = HMAC-SHA256(secret, "{name}:{expires}"). The
/v1/artifacts route verifies the signature and expiry before serving
the file, so the lookup path is the same GET-a-signed-URL round trip a
cloud bucket gives.

Writes are atomic: bytes go to a uniquely named temp file which is then
renamed over the target, so a concurrent reader sees either the old
artifact, the new one, or none, never a partial file. Two writers of the
same key both succeed and the last rename wins.

Unlike a cloud bucket there is no store-owned lifecycle, so files older
than storage.ttl_seconds can be expired by ArtifactTTLManager (disabled
when the TTL is 0).
"""
from __future__ import annotations

import asyncio
import hashlib
import hmac
import secrets
import threading
import time
import uuid
from pathlib import Path
from typing import Any, AsyncIterable, Dict, Optional
from urllib.parse import urlencode

from speech_relay.core.config import Defaults
from speech_relay.core.errors import CacheLookupError, PersistenceError
from speech_relay.core.logging import get_logger, info, verbose, warn
from speech_relay.storage.base import ObjectStore, read_all
from speech_relay.storage.keys import ARTIFACT_SUFFIX, is_object_name
from speech_relay.utils.timeit import timeit

_LOG = get_logger("speech-relay.storage.local")


class ArtifactTTLManager:
    """
    Removes artifacts older than the TTL.

    Cleanup runs at most once per interval, in a daemon thread, so
    triggering it from the request path never blocks.
    """

    def __init__(
        self,
        root: Path,
        ttl_seconds: int,
        cleanup_interval_seconds: int = Defaults.STORAGE_CLEANUP_INTERVAL_S,
    ):
        self._root = root
        self._ttl_seconds = ttl_seconds
        self._cleanup_interval = cleanup_interval_seconds
        self._last_cleanup = 0.0
        self._lock = threading.Lock()
        self._cleanup_running = False

        self._stats_lock = threading.Lock()
        self._total_cleaned = 0
        self._total_bytes_freed = 0

    @property
    def enabled(self) -> bool:
        return self._ttl_seconds > 0

    @property
    def ttl_seconds(self) -> int:
        return self._ttl_seconds

    def maybe_cleanup(self) -> None:
        """Start a background cleanup if the interval has elapsed."""
        if not self.enabled:
            return
        now = time.time()
        with self._lock:
            if now - self._last_cleanup < self._cleanup_interval:
                return
            if self._cleanup_running:
                return
            self._cleanup_running = True
            self._last_cleanup = now

        threading.Thread(
            target=self._do_cleanup,
            daemon=True,
            name="artifact-ttl-cleanup",
        ).start()

    def force_cleanup(self) -> Dict[str, int]:
        """Run cleanup now (blocking). Returns files_removed and bytes_freed."""
        with self._lock:
            self._cleanup_running = True
        return self._do_cleanup()

    def _do_cleanup(self) -> Dict[str, int]:
        try:
            if not self._root.exists():
                return {"files_removed": 0, "bytes_freed": 0}

            cutoff = time.time() - self._ttl_seconds
            files_removed = 0
            bytes_freed = 0
            errors = 0

            for artifact in self._root.glob(f"*{ARTIFACT_SUFFIX}"):
                try:
                    st = artifact.stat()
                    if st.st_mtime < cutoff:
                        artifact.unlink()
                        files_removed += 1
                        bytes_freed += st.st_size
                except OSError as e:
                    errors += 1
                    verbose(_LOG, "cleanup_file_error", file=artifact.name, error=str(e))

            with self._stats_lock:
                self._total_cleaned += files_removed
                self._total_bytes_freed += bytes_freed

            if files_removed > 0:
                info(
                    _LOG, "artifact_cleanup",
                    files_removed=files_removed,
                    bytes_freed=bytes_freed,
                    errors=errors,
                )

            return {"files_removed": files_removed, "bytes_freed": bytes_freed}

        finally:
            with self._lock:
                self._cleanup_running = False

    def get_stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return {
                "total_files_cleaned": self._total_cleaned,
                "total_bytes_freed": self._total_bytes_freed,
            }


class LocalObjectStore(ObjectStore):
    """
    Filesystem bucket with HMAC-signed retrieval URLs.

    Args:
        base_dir: Directory holding bucket directories.
        bucket: Bucket (sub-directory) name.
        public_base_url: Externally reachable base URL of this service.
        signing_secret: HMAC key. When empty a random per-process key is
            used, so URLs stop verifying after a restart.
        ttl_seconds: Expire artifacts older than this (0 = never).
        cleanup_interval_s: Minimum seconds between cleanup runs.
    """

    name = "local"

    def __init__(
        self,
        base_dir: str = Defaults.STORAGE_BASE_DIR,
        bucket: str = Defaults.STORAGE_BUCKET,
        public_base_url: str = Defaults.STORAGE_PUBLIC_BASE_URL,
        signing_secret: str = "",
        ttl_seconds: int = Defaults.STORAGE_TTL_SECONDS,
        cleanup_interval_s: int = Defaults.STORAGE_CLEANUP_INTERVAL_S,
    ):
        self._root = Path(base_dir) / bucket
        self._bucket = bucket
        self._public_base_url = public_base_url.rstrip("/")
        if not signing_secret:
            warn(_LOG, "signing_secret_missing", note="using an ephemeral key")
            signing_secret = secrets.token_hex(32)
        self._secret = signing_secret.encode("utf-8")
        self._ttl = ArtifactTTLManager(self._root, ttl_seconds, cleanup_interval_s)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, name: str) -> Path:
        """
        Resolve an artifact name to its file path.

        Raises:
            ValueError: If `name` is not a valid artifact name.
        """
        if not is_object_name(name):
            raise ValueError(f"invalid artifact name: {name!r}")
        return self._root / name

    # ─────────────────────────────────────────────────────────────────────
    # URL signing
    # ─────────────────────────────────────────────────────────────────────

    def sign(self, name: str, expires: int) -> str:
        message = f"{name}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify(self, name: str, expires: int, signature: str, now: Optional[float] = None) -> bool:
        """Check that `signature` matches and `expires` is still in the future."""
        if now is None:
            now = time.time()
        if expires < now:
            return False
        return hmac.compare_digest(self.sign(name, expires), signature)

    def signed_url(self, name: str, ttl_seconds: int, now: Optional[float] = None) -> str:
        if now is None:
            now = time.time()
        expires = int(now) + int(ttl_seconds)
        query = urlencode({"expires": expires, "signature": self.sign(name, expires)})
        return f"{self._public_base_url}/v1/artifacts/{name}?{query}"

    # ─────────────────────────────────────────────────────────────────────
    # ObjectStore
    # ─────────────────────────────────────────────────────────────────────

    async def get_signed_url(self, name: str, ttl_seconds: int) -> Optional[str]:
        self._ttl.maybe_cleanup()
        path = self.path_for(name)
        try:
            exists = await asyncio.to_thread(path.is_file)
        except OSError as e:
            raise CacheLookupError(
                "Artifact store unavailable",
                details={"name": name, "error": str(e)},
            ) from e
        if not exists:
            return None
        return self.signed_url(name, ttl_seconds)

    async def put(self, name: str, chunks: AsyncIterable[bytes], content_type: str) -> int:
        path = self.path_for(name)
        data = await read_all(chunks)
        with timeit("storage_write") as t:
            try:
                await asyncio.to_thread(self._write_atomic, path, data)
            except OSError as e:
                raise PersistenceError(
                    "Failed to write artifact",
                    details={"name": name, "error": str(e)},
                ) from e
        verbose(_LOG, "artifact_written", key=name[:8], bytes=len(data), seconds=round(t.seconds, 4))
        return len(data)

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Unique temp name so concurrent writers of one key don't collide
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
        try:
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError:
            try:
                tmp.unlink(missing_ok=True)
            except OSError:
                pass
            raise

    def get_storage_info(self) -> Dict[str, Any]:
        """Count artifacts and bytes on disk."""
        if not self._root.exists():
            return {"file_count": 0, "total_bytes": 0}

        file_count = 0
        total_bytes = 0
        for artifact in self._root.glob(f"*{ARTIFACT_SUFFIX}"):
            try:
                total_bytes += artifact.stat().st_size
                file_count += 1
            except OSError:
                pass  # removed while scanning
        return {"file_count": file_count, "total_bytes": total_bytes}

    def info(self) -> Dict[str, Any]:
        return {
            "backend": self.name,
            "bucket": self._bucket,
            "ttl_seconds": self._ttl.ttl_seconds,
            **self.get_storage_info(),
            **self._ttl.get_stats(),
        }

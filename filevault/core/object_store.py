"""Object store: where uploaded bytes live.

The rest of the system only sees the ``ObjectStore`` interface and opaque
``object_ref`` strings, so a cloud bucket can replace ``LocalObjectStore``
without touching the services.

``LocalObjectStore`` keeps each blob as a file under ``root`` (fanned out by
the first two characters of the ref) with its content type in a sidecar file.
Download URLs are HMAC-signed and expire; ``GET /api/objects/{ref}`` checks the
signature before streaming the bytes.
"""

import logging
import re
import time
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Optional

from .config import settings
from .token_factory import sign_value, verify_signature
from ..exceptions import ExternalStoreFailure, ObjectNotFoundError, ValidationError

logger = logging.getLogger(__name__)

URL_MODES = ("view", "download")

_REF_PATTERN = re.compile(r"^[0-9a-f]{32}$")
_DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ObjectStore:
    """Interface every object store backend implements."""

    def put(self, data: bytes, content_type: str) -> str:
        raise NotImplementedError

    def get(self, object_ref: str) -> bytes:
        raise NotImplementedError

    def content_type(self, object_ref: str) -> str:
        raise NotImplementedError

    def delete(self, object_ref: str) -> None:
        """Remove the object. Deleting a missing object is not an error."""
        raise NotImplementedError

    def exists(self, object_ref: str) -> bool:
        raise NotImplementedError

    def url_for(self, object_ref: str, mode: str) -> str:
        raise NotImplementedError

    def verify_url(self, object_ref: str, mode: str, expires: int, sig: str) -> bool:
        raise NotImplementedError


class LocalObjectStore(ObjectStore):
    """Filesystem-backed store with signed, expiring URLs."""

    def __init__(self, root: str, secret: str, url_ttl_seconds: int = 900, url_prefix: str = "/api/objects"):
        self.root = Path(root)
        self.secret = secret
        self.url_ttl_seconds = url_ttl_seconds
        self.url_prefix = url_prefix.rstrip("/")

    # -- blob I/O ---------------------------------------------------------

    def put(self, data: bytes, content_type: str) -> str:
        object_ref = uuid.uuid4().hex
        blob = self._blob_path(object_ref)
        try:
            blob.parent.mkdir(parents=True, exist_ok=True)
            blob.write_bytes(data)
            self._type_path(object_ref).write_text(content_type or _DEFAULT_CONTENT_TYPE)
        except OSError as e:
            logger.error("Object write failed: %s", e, extra={"object_ref": object_ref})
            raise ExternalStoreFailure("Object store write failed", original_error=e) from e
        logger.debug("Stored object", extra={"object_ref": object_ref, "size": len(data)})
        return object_ref

    def get(self, object_ref: str) -> bytes:
        blob = self._blob_path(object_ref)
        try:
            return blob.read_bytes()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(object_ref) from e
        except OSError as e:
            raise ExternalStoreFailure("Object store read failed", original_error=e) from e

    def content_type(self, object_ref: str) -> str:
        try:
            return self._type_path(object_ref).read_text().strip() or _DEFAULT_CONTENT_TYPE
        except FileNotFoundError:
            return _DEFAULT_CONTENT_TYPE
        except OSError as e:
            raise ExternalStoreFailure("Object store read failed", original_error=e) from e

    def delete(self, object_ref: str) -> None:
        try:
            self._blob_path(object_ref).unlink(missing_ok=True)
            self._type_path(object_ref).unlink(missing_ok=True)
        except OSError as e:
            logger.error("Object delete failed: %s", e, extra={"object_ref": object_ref})
            raise ExternalStoreFailure("Object store delete failed", original_error=e) from e

    def exists(self, object_ref: str) -> bool:
        try:
            return self._blob_path(object_ref).is_file()
        except ObjectNotFoundError:
            return False

    # -- signed URLs ------------------------------------------------------

    def url_for(self, object_ref: str, mode: str, now: Optional[float] = None) -> str:
        if mode not in URL_MODES:
            raise ValidationError(f"Invalid URL mode: {mode}", field="mode")
        self._check_ref(object_ref)
        expires = int((now if now is not None else time.time()) + self.url_ttl_seconds)
        sig = sign_value(self._signing_input(object_ref, mode, expires), self.secret)
        return f"{self.url_prefix}/{object_ref}?mode={mode}&expires={expires}&sig={sig}"

    def verify_url(
        self, object_ref: str, mode: str, expires: int, sig: str, now: Optional[float] = None
    ) -> bool:
        """True when the signature matches and the URL has not expired."""
        if mode not in URL_MODES or not _REF_PATTERN.match(object_ref):
            return False
        if (now if now is not None else time.time()) > expires:
            return False
        return verify_signature(self._signing_input(object_ref, mode, expires), sig, self.secret)

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _signing_input(object_ref: str, mode: str, expires: int) -> str:
        return f"{object_ref}:{mode}:{expires}"

    @staticmethod
    def _check_ref(object_ref: str) -> None:
        # Refs become path components, so anything but our own format is rejected.
        if not _REF_PATTERN.match(object_ref or ""):
            raise ObjectNotFoundError(object_ref)

    def _blob_path(self, object_ref: str) -> Path:
        self._check_ref(object_ref)
        return self.root / object_ref[:2] / object_ref

    def _type_path(self, object_ref: str) -> Path:
        self._check_ref(object_ref)
        return self.root / object_ref[:2] / f"{object_ref}.type"


@lru_cache(maxsize=1)
def _default_store() -> LocalObjectStore:
    return LocalObjectStore(
        root=settings.storage_dir,
        secret=settings.jwt_secret_key,
        url_ttl_seconds=settings.object_url_ttl_seconds,
    )


def get_object_store() -> ObjectStore:
    """FastAPI dependency returning the configured object store."""
    return _default_store()

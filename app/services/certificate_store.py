"""
Medical certificate blob store

Certificates are referenced from leave requests by an opaque key. The
engine only ever deletes them, and only keys under CERTIFICATE_KEY_PREFIX.
"""
import logging
from pathlib import Path
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class CertificateStore:
    """Local-disk store rooted at CERTIFICATE_STORAGE_DIR"""

    def __init__(self, root: str, key_prefix: str):
        self.root = Path(root).resolve()
        self.key_prefix = key_prefix

    def owns(self, key: Optional[str]) -> bool:
        return bool(key) and key.startswith(self.key_prefix)

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Certificate key escapes storage root: {key}")
        return path

    def delete(self, key: str) -> bool:
        """Delete a stored certificate. Returns False when nothing was stored."""
        path = self._path_for(key)
        if not path.exists():
            return False
        path.unlink()
        return True


_store: Optional[CertificateStore] = None


def get_certificate_store() -> CertificateStore:
    global _store
    if _store is None:
        _store = CertificateStore(settings.CERTIFICATE_STORAGE_DIR, settings.CERTIFICATE_KEY_PREFIX)
    return _store


def set_certificate_store(store: Optional[CertificateStore]) -> None:
    """Swap the process-wide store (None restores the configured default)."""
    global _store
    _store = store


def delete_certificate(key: Optional[str]) -> bool:
    """
    Best-effort removal of a certificate referenced by a deleted request.

    Keys outside the managed prefix are left alone. Storage failures are
    logged and reported as False, never raised.
    """
    store = get_certificate_store()
    if not store.owns(key):
        return False
    try:
        deleted = store.delete(key)
    except Exception:
        logger.exception("certificate delete failed: key=%s", key)
        return False
    logger.info("certificate deleted: key=%s found=%s", key, deleted)
    return deleted

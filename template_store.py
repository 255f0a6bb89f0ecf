"""
Where template PDFs come from.

Stores are constructed explicitly and handed to the stamper, so nothing in
the stamping code reaches for a global storage client.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from document_errors import TemplateNotFound

logger = logging.getLogger(__name__)


def _safe_name(name: str) -> str:
    cleaned = Path(name).name
    if not cleaned or cleaned in {".", ".."}:
        raise TemplateNotFound(name)
    return cleaned


class LocalTemplateStore:
    """Templates kept as files in one directory (the server's assets folder)."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, name: str) -> Path:
        return self.root / _safe_name(name)

    def load(self, name: str) -> bytes:
        path = self.path_for(name)
        if not path.is_file():
            logger.error("Template %s not found under %s", name, self.root)
            raise TemplateNotFound(name, str(self.root))
        return path.read_bytes()


class BucketTemplateStore:
    """Templates held in a cloud storage bucket.

    *bucket* is any client object with the google-cloud-storage shape:
    ``bucket.blob(path)`` returning a blob with ``exists()`` and
    ``download_as_bytes()``.  The caller builds and authenticates it.
    """

    def __init__(self, bucket: Any, prefix: str = "templates/") -> None:
        self.bucket = bucket
        self.prefix = prefix

    def load(self, name: str) -> bytes:
        blob_path = f"{self.prefix}{_safe_name(name)}"
        blob = self.bucket.blob(blob_path)
        if not blob.exists():
            bucket_name = getattr(self.bucket, "name", None)
            logger.error("Template %s not found in bucket %s", blob_path, bucket_name)
            raise TemplateNotFound(blob_path, bucket_name)
        data = blob.download_as_bytes()
        logger.debug("Downloaded template %s (%d bytes)", blob_path, len(data))
        return data

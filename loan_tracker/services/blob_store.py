"""Blob storage for uploaded loan photos."""
import logging
from pathlib import Path
from typing import Optional, Protocol

from loan_tracker.errors import BlobError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def write(self, name: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Persist ``content`` under ``name`` and return its store-relative URL."""
        ...


class LocalBlobStore:
    """Writes blobs to a directory served under ``url_prefix``."""

    def __init__(self, base_dir: str, url_prefix: str):
        self.base_dir = Path(base_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def ensure_dir(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.error(f"Cannot create upload directory {self.base_dir}: {exc}")
            raise BlobError() from exc

    def write(self, name: str, content: bytes, content_type: Optional[str] = None) -> str:
        if "/" in name or "\\" in name or name in ("", ".", ".."):
            raise BlobError("Invalid blob name")
        self.ensure_dir()
        path = self.base_dir / name
        try:
            # "xb" never overwrites an existing blob
            with open(path, "xb") as fh:
                fh.write(content)
        except OSError as exc:
            logger.error(f"Failed to write blob {path}: {exc}", exc_info=True)
            raise BlobError() from exc
        logger.info(f"Stored blob {name} ({len(content)} bytes, {content_type or 'unknown type'})")
        return f"{self.url_prefix}/{name}"

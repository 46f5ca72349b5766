"""Photo attachments for loans.

Checks run in a fixed order so that nothing about file validation can be
learned for a loan the caller does not own:

1. the loan exists and belongs to the owner (otherwise NotFound),
2. a file was sent,
3. the MIME type is allowed,
4. the size is within the cap,
5. the photo type tag is known.

Only then are the bytes read (never more than one past the cap), the blob
written and the row inserted. If the insert fails after the blob write, the
blob is left behind as an orphan; it is logged with its URL for out-of-band
cleanup.
"""
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable, List, Optional, Union

from loan_tracker.errors import StoreError, ValidationError
from loan_tracker.models.loan import LoanPhoto
from loan_tracker.services.blob_store import BlobStore
from loan_tracker.services.loan_repository import LoanRepository

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/webp")
ALLOWED_PHOTO_TYPES = ("start", "end", "loan")
DEFAULT_PHOTO_TYPE = "loan"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024

_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}
_SAFE_EXTENSION = re.compile(r"^\.[a-z0-9]{1,8}$")

# Raw bytes, or a reader called with the most bytes it may return
FileContent = Union[bytes, Callable[[int], bytes]]


@dataclass(frozen=True)
class FileMeta:
    filename: Optional[str]
    mime_type: Optional[str]
    size: int


def blob_name(loan_id: str, meta: FileMeta) -> str:
    """Collision-resistant name: loan id, random suffix, uploaded extension."""
    extension = PurePath(meta.filename or "").suffix.lower()
    if not _SAFE_EXTENSION.match(extension):
        extension = _EXTENSIONS.get(meta.mime_type or "", "")
    return f"{loan_id}-{uuid.uuid4().hex}{extension}"


class PhotoAttachmentManager:
    def __init__(self, repository: LoanRepository, blob_store: BlobStore, max_bytes: int = DEFAULT_MAX_BYTES):
        self.repository = repository
        self.blob_store = blob_store
        self.max_bytes = max_bytes

    def attach(
        self,
        owner_id: str,
        loan_id: str,
        file_content: Optional[FileContent],
        file_meta: Optional[FileMeta],
        photo_type: Optional[str] = None,
    ) -> LoanPhoto:
        loan = self.repository.get_by_id(owner_id, loan_id)

        if file_content is None or file_meta is None:
            raise ValidationError({"file": ["No file was uploaded"]}, "No file was uploaded")

        if file_meta.mime_type not in ALLOWED_MIME_TYPES:
            message = f"Invalid file type. Allowed types: {', '.join(ALLOWED_MIME_TYPES)}"
            raise ValidationError({"file": [message]}, message)

        if file_meta.size > self.max_bytes:
            raise self._too_large()

        photo_type = photo_type or DEFAULT_PHOTO_TYPE
        if photo_type not in ALLOWED_PHOTO_TYPES:
            message = f"Invalid photo type. Allowed types: {', '.join(ALLOWED_PHOTO_TYPES)}"
            raise ValidationError({"type": [message]}, message)

        content = file_content(self.max_bytes + 1) if callable(file_content) else file_content
        if len(content) > self.max_bytes:
            raise self._too_large()

        url = self.blob_store.write(blob_name(loan.id, file_meta), content, file_meta.mime_type)
        try:
            photo = self.repository.add_photo(loan, url, photo_type)
        except StoreError:
            logger.warning(f"Orphaned blob {url} for loan {loan.id}: photo row was not saved")
            raise
        logger.info(f"Attached photo {photo.id} ({photo_type}) to loan {loan.id}")
        return photo

    def _too_large(self) -> ValidationError:
        message = f"File is too large. Maximum size is {self.max_bytes // (1024 * 1024)}MB"
        return ValidationError({"file": [message]}, message)

    def list_photos(self, owner_id: str, loan_id: str) -> List[LoanPhoto]:
        return self.repository.list_photos(owner_id, loan_id)

"""Per-request service wiring.

Long-lived collaborators (settings, blob store, hasher, throttle) are
built once by ``create_app`` and kept on ``app.state``; the services that
need a database session are assembled here for each request.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from loan_tracker.database import get_db
from loan_tracker.services.lifecycle import LoanLifecycle
from loan_tracker.services.loan_repository import LoanRepository
from loan_tracker.services.photos import PhotoAttachmentManager


def get_loan_repository(request: Request, db: Session = Depends(get_db)) -> LoanRepository:
    return LoanRepository(db, enforce_chronology=request.app.state.settings.enforce_chronology)


def get_lifecycle(
    request: Request,
    repository: LoanRepository = Depends(get_loan_repository),
) -> LoanLifecycle:
    return LoanLifecycle(repository, enforce_chronology=request.app.state.settings.enforce_chronology)


def get_photo_manager(
    request: Request,
    repository: LoanRepository = Depends(get_loan_repository),
) -> PhotoAttachmentManager:
    return PhotoAttachmentManager(
        repository,
        request.app.state.blob_store,
        max_bytes=request.app.state.settings.max_upload_bytes,
    )

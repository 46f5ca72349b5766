import os
from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile
from typing import Any, List, Optional
from loan_tracker.models.user import User
from loan_tracker.schemas.loan import LoanDetailResponse, LoanPhotoResponse, LoanResponse, LoanStats
from loan_tracker.dependencies import get_lifecycle, get_loan_repository, get_photo_manager
from loan_tracker.services.auth import get_current_user
from loan_tracker.services.lifecycle import LoanLifecycle, LoanStatus, serialize_loan
from loan_tracker.services.loan_repository import LoanRepository
from loan_tracker.services.photos import FileMeta, PhotoAttachmentManager
from loan_tracker.services.statistics import categorize, summarize
from loan_tracker.utils.timezone import now_utc

router = APIRouter(prefix="/loans", tags=["Loans"])

def _upload_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    return size

@router.get("", response_model=List[LoanResponse])
async def list_loans(
    status_filter: Optional[LoanStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    repository: LoanRepository = Depends(get_loan_repository)
):
    """List the current user's loans, newest first."""
    loans = repository.list(current_user.id)
    now = now_utc()
    if status_filter is not None:
        loans = categorize(loans, now).bucket(status_filter)
    return [serialize_loan(loan, now) for loan in loans]

@router.post("", response_model=LoanResponse)
async def create_loan(
    payload: Any = Body(None),
    current_user: User = Depends(get_current_user),
    lifecycle: LoanLifecycle = Depends(get_lifecycle)
):
    """Record a new loan for the current user."""
    loan = lifecycle.create(current_user.id, payload)
    return serialize_loan(loan)

@router.get("/stats", response_model=LoanStats)
async def get_loan_stats(
    current_user: User = Depends(get_current_user),
    repository: LoanRepository = Depends(get_loan_repository)
):
    """Active, overdue and returned counts, computed now."""
    return summarize(categorize(repository.list(current_user.id), now_utc()))

@router.get("/{loan_id}", response_model=LoanDetailResponse)
async def get_loan(
    loan_id: str,
    current_user: User = Depends(get_current_user),
    repository: LoanRepository = Depends(get_loan_repository)
):
    """Get one loan with its photos and reminder history."""
    loan = repository.get_by_id(current_user.id, loan_id, with_details=True)
    return serialize_loan(loan, detail=True)

@router.patch("/{loan_id}/return", response_model=LoanResponse)
async def return_loan(
    loan_id: str,
    payload: Any = Body(None),
    current_user: User = Depends(get_current_user),
    lifecycle: LoanLifecycle = Depends(get_lifecycle)
):
    """Mark a loan as returned with its final condition."""
    loan = lifecycle.mark_returned(current_user.id, loan_id, payload)
    return serialize_loan(loan)

@router.get("/{loan_id}/photos", response_model=List[LoanPhotoResponse])
async def list_loan_photos(
    loan_id: str,
    current_user: User = Depends(get_current_user),
    photo_manager: PhotoAttachmentManager = Depends(get_photo_manager)
):
    """List a loan's photos, newest first."""
    photos = photo_manager.list_photos(current_user.id, loan_id)
    return [LoanPhotoResponse.from_photo(photo) for photo in photos]

@router.post("/{loan_id}/photos", response_model=LoanPhotoResponse)
async def upload_loan_photo(
    loan_id: str,
    file: Optional[UploadFile] = File(None),
    photo_type: Optional[str] = Form(None, alias="type"),
    current_user: User = Depends(get_current_user),
    photo_manager: PhotoAttachmentManager = Depends(get_photo_manager)
):
    """Attach a photo (multipart form fields ``file`` and ``type``)."""
    content = None
    meta = None
    if file is not None:
        # Nothing is read until the manager has checked ownership, type and size
        meta = FileMeta(filename=file.filename, mime_type=file.content_type, size=_upload_size(file))
        content = file.file.read
    photo = photo_manager.attach(current_user.id, loan_id, content, meta, photo_type)
    return LoanPhotoResponse.from_photo(photo)

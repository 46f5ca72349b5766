"""Loan lifecycle: creation, derived status and the return transition.

A loan is ``returned`` once ``returned_at`` is set and never leaves that
state. Until then it is ``active`` or ``overdue`` depending on the
current instant; overdue is never stored and is recomputed on each read.
"""
import enum
import logging
from datetime import datetime
from typing import Any, Optional

from loan_tracker.errors import AlreadyReturned, ValidationError
from loan_tracker.models.loan import Loan
from loan_tracker.schemas.loan import (
    LoanDetailResponse,
    LoanPhotoResponse,
    LoanResponse,
    ReminderResponse,
)
from loan_tracker.services.loan_repository import LoanRepository
from loan_tracker.utils.result import Err
from loan_tracker.utils.timezone import ensure_aware, now_utc
from loan_tracker.validation import validate_loan_return

logger = logging.getLogger(__name__)


class LoanStatus(str, enum.Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"


def is_overdue(loan: Loan, now: datetime) -> bool:
    return loan.returned_at is None and ensure_aware(now) > ensure_aware(loan.return_by)


def derive_status(loan: Loan, now: datetime) -> LoanStatus:
    if loan.returned_at is not None:
        return LoanStatus.RETURNED
    if is_overdue(loan, now):
        return LoanStatus.OVERDUE
    return LoanStatus.ACTIVE


def serialize_loan(loan: Loan, now: Optional[datetime] = None, detail: bool = False) -> LoanResponse:
    """Build the response model, deriving status against ``now``."""
    now = now or now_utc()
    status = derive_status(loan, now)
    data = dict(
        id=loan.id,
        user_id=loan.user_id,
        recipient_name=loan.recipient_name,
        item_name=loan.item_name,
        description=loan.description,
        quantity=loan.quantity,
        state_start=loan.state_start,
        state_end=loan.state_end,
        borrowed_at=ensure_aware(loan.borrowed_at),
        return_by=ensure_aware(loan.return_by),
        returned_at=ensure_aware(loan.returned_at),
        created_at=ensure_aware(loan.created_at),
        updated_at=ensure_aware(loan.updated_at),
        status=status.value,
        is_overdue=status is LoanStatus.OVERDUE,
        photos=[LoanPhotoResponse.from_photo(photo) for photo in loan.photos],
    )
    if not detail:
        return LoanResponse(**data)
    reminders = [
        ReminderResponse(
            id=reminder.id,
            loan_id=reminder.loan_id,
            subject=reminder.subject,
            sent_at=ensure_aware(reminder.sent_at),
        )
        for reminder in loan.reminders
    ]
    return LoanDetailResponse(**data, reminders=reminders)


class LoanLifecycle:
    def __init__(self, repository: LoanRepository, enforce_chronology: bool = True):
        self.repository = repository
        self.enforce_chronology = enforce_chronology

    def create(self, owner_id: str, fields: Any) -> Loan:
        loan = self.repository.create(owner_id, fields)
        logger.info(f"Loan {loan.id} created for user {owner_id}")
        return loan

    def mark_returned(self, owner_id: str, loan_id: str, payload: Any) -> Loan:
        """Move a loan to ``returned``.

        Checks run in a fixed order: ownership (NotFound), already returned
        (AlreadyReturned), then the payload (ValidationError). The write
        itself is conditional on the row still being open.
        """
        loan = self.repository.get_by_id(owner_id, loan_id)
        if loan.returned_at is not None:
            logger.info(f"Rejected second return of loan {loan_id}")
            raise AlreadyReturned()

        result = validate_loan_return(
            payload,
            borrowed_at=loan.borrowed_at,
            enforce_chronology=self.enforce_chronology,
        )
        if isinstance(result, Err):
            raise ValidationError(result.errors)

        returned = self.repository.mark_returned(
            owner_id, loan_id, result.value.state_end, result.value.returned_at
        )
        logger.info(f"Loan {loan_id} returned")
        return returned

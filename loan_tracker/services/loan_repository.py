import logging
from datetime import datetime
from typing import Any, List
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from loan_tracker.errors import AlreadyReturned, NotFound, StoreError, ValidationError
from loan_tracker.models.loan import Loan, LoanPhoto
from loan_tracker.schemas.loan import LoanCreate
from loan_tracker.utils.result import Err
from loan_tracker.utils.timezone import ensure_aware, now_utc
from loan_tracker.validation import validate_loan_create

logger = logging.getLogger(__name__)


class LoanRepository:
    """Loan storage. Every query is filtered by the owning user's id.

    A loan owned by another user is reported exactly like a missing one.
    """

    def __init__(self, db: Session, enforce_chronology: bool = True):
        self.db = db
        self.enforce_chronology = enforce_chronology

    def _owned(self, owner_id: str):
        return self.db.query(Loan).filter(Loan.user_id == owner_id)

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to {action}: {e}", exc_info=True)
            raise StoreError()
        except Exception:
            self.db.rollback()
            raise

    def create(self, owner_id: str, fields: Any) -> Loan:
        if isinstance(fields, LoanCreate):
            fields = fields.model_dump()
        result = validate_loan_create(fields, enforce_chronology=self.enforce_chronology)
        if isinstance(result, Err):
            raise ValidationError(result.errors)
        data = result.value

        loan = Loan(
            user_id=owner_id,
            recipient_name=data.recipient_name,
            item_name=data.item_name,
            description=data.description,
            quantity=data.quantity,
            state_start=data.state_start,
            borrowed_at=ensure_aware(data.borrowed_at),
            return_by=ensure_aware(data.return_by),
        )
        self.db.add(loan)
        self._commit("create loan")
        self.db.refresh(loan)
        return loan

    def list(self, owner_id: str) -> List[Loan]:
        try:
            return (
                self._owned(owner_id)
                .options(selectinload(Loan.photos))
                .order_by(Loan.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to list loans for user {owner_id}: {e}", exc_info=True)
            raise StoreError()

    def get_by_id(self, owner_id: str, loan_id: str, with_details: bool = False) -> Loan:
        try:
            query = self._owned(owner_id).filter(Loan.id == loan_id)
            if with_details:
                query = query.options(selectinload(Loan.photos), selectinload(Loan.reminders))
            loan = query.first()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load loan {loan_id}: {e}", exc_info=True)
            raise StoreError()
        if loan is None:
            raise NotFound("Loan not found")
        return loan

    def mark_returned(self, owner_id: str, loan_id: str, state_end: str, returned_at: datetime) -> Loan:
        """Close the loan with a single conditional update.

        Only a row that is still open is touched, so of two concurrent
        returns exactly one wins; the other sees zero rows and gets
        AlreadyReturned. returned_at and state_end land in the same UPDATE.
        """
        try:
            updated = (
                self._owned(owner_id)
                .filter(Loan.id == loan_id, Loan.returned_at.is_(None))
                .update(
                    {
                        Loan.returned_at: ensure_aware(returned_at),
                        Loan.state_end: state_end,
                        Loan.updated_at: now_utc(),
                    },
                    synchronize_session=False,
                )
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to return loan {loan_id}: {e}", exc_info=True)
            raise StoreError()

        if updated == 0:
            self.db.rollback()
            # Either gone/foreign or already closed; tell them apart for the caller
            self.get_by_id(owner_id, loan_id)
            raise AlreadyReturned()

        self._commit("return loan")
        self.db.expire_all()
        return self.get_by_id(owner_id, loan_id)

    def add_photo(self, loan: Loan, url: str, photo_type: str) -> LoanPhoto:
        photo = LoanPhoto(loan_id=loan.id, url=url, type=photo_type)
        self.db.add(photo)
        self._commit("save loan photo")
        self.db.refresh(photo)
        return photo

    def list_photos(self, owner_id: str, loan_id: str) -> List[LoanPhoto]:
        loan = self.get_by_id(owner_id, loan_id)
        try:
            return (
                self.db.query(LoanPhoto)
                .filter(LoanPhoto.loan_id == loan.id)
                .order_by(LoanPhoto.uploaded_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to list photos for loan {loan_id}: {e}", exc_info=True)
            raise StoreError()

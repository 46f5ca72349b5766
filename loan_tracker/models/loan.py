import uuid
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from loan_tracker.database import Base
from loan_tracker.utils.timezone import now_utc

def _new_id() -> str:
    return str(uuid.uuid4())

class Loan(Base):
    __tablename__ = "loan"
    
    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_name = Column(String(255), nullable=False)
    item_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    state_start = Column(Text, nullable=False)
    state_end = Column(Text, nullable=True)
    borrowed_at = Column(DateTime(timezone=True), nullable=False)
    return_by = Column(DateTime(timezone=True), nullable=False, index=True)
    returned_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
    
    # Relationships
    user = relationship("User", back_populates="loans")
    photos = relationship(
        "LoanPhoto",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="LoanPhoto.uploaded_at.desc()",
    )
    reminders = relationship(
        "ReminderLog",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="ReminderLog.sent_at.desc()",
    )
    
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="chk_loan_quantity"),
        # returned_at and state_end are set together or not at all
        CheckConstraint(
            "(returned_at IS NULL AND state_end IS NULL) OR "
            "(returned_at IS NOT NULL AND state_end IS NOT NULL)",
            name="chk_loan_return_pair",
        ),
    )

class LoanPhoto(Base):
    __tablename__ = "loan_photo"
    
    id = Column(String(36), primary_key=True, default=_new_id)
    loan_id = Column(String(36), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(512), nullable=False)  # store-relative, resolved by the serving layer
    type = Column(String(20), default="loan", nullable=False)
    uploaded_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    
    # Relationships
    loan = relationship("Loan", back_populates="photos")

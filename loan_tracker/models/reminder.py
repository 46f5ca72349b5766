import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from loan_tracker.database import Base
from loan_tracker.utils.timezone import now_utc

class ReminderLog(Base):
    """Append-only history of reminders sent for a loan.

    Rows are written by an external sender; this service only reads them.
    """
    __tablename__ = "reminder_log"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    loan_id = Column(String(36), ForeignKey("loan.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = Column(String(255), nullable=False)
    sent_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    
    # Relationships
    loan = relationship("Loan", back_populates="reminders")

import uuid
from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from loan_tracker.database import Base
from loan_tracker.utils.timezone import now_utc

class User(Base):
    __tablename__ = "user"
    
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
    
    # Relationships
    loans = relationship("Loan", back_populates="user", cascade="all, delete-orphan")

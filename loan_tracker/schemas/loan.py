from pydantic import BaseModel, Field
from typing import Literal, Optional, List
from datetime import datetime

from loan_tracker.utils.timezone import ensure_aware


class LoanCreate(BaseModel):
    recipient_name: str = Field(..., min_length=2, max_length=255)
    item_name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    quantity: int = Field(..., ge=1, le=2_147_483_647, strict=True)
    borrowed_at: datetime
    return_by: datetime
    state_start: str = Field(..., min_length=2)

class LoanReturn(BaseModel):
    state_end: str = Field(..., min_length=2)
    returned_at: datetime

class LoanPhotoResponse(BaseModel):
    id: str
    loan_id: str
    url: str
    type: str
    uploaded_at: datetime
    
    class Config:
        from_attributes = True

    @classmethod
    def from_photo(cls, photo) -> "LoanPhotoResponse":
        return cls(
            id=photo.id,
            loan_id=photo.loan_id,
            url=photo.url,
            type=photo.type,
            uploaded_at=ensure_aware(photo.uploaded_at),
        )

class ReminderResponse(BaseModel):
    id: str
    loan_id: str
    subject: str
    sent_at: datetime
    
    class Config:
        from_attributes = True

class LoanResponse(BaseModel):
    id: str
    user_id: str
    recipient_name: str
    item_name: str
    description: Optional[str] = None
    quantity: int
    state_start: str
    state_end: Optional[str] = None
    borrowed_at: datetime
    return_by: datetime
    returned_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    # Derived at serialisation time, never stored
    status: Literal["active", "overdue", "returned"]
    is_overdue: bool
    photos: List[LoanPhotoResponse] = []

class LoanDetailResponse(LoanResponse):
    reminders: List[ReminderResponse] = []

class LoanStats(BaseModel):
    active: int
    overdue: int
    returned: int
    total: int

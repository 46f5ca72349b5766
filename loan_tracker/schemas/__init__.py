from .auth import RegisterRequest, LoginRequest, UserResponse, RegisterResponse, Token
from .loan import (
    LoanCreate, LoanReturn,
    LoanPhotoResponse, ReminderResponse,
    LoanResponse, LoanDetailResponse, LoanStats,
)

__all__ = [
    "RegisterRequest", "LoginRequest", "UserResponse", "RegisterResponse", "Token",
    "LoanCreate", "LoanReturn",
    "LoanPhotoResponse", "ReminderResponse",
    "LoanResponse", "LoanDetailResponse", "LoanStats",
]

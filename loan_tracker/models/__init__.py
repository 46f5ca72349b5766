from .user import User
from .loan import Loan, LoanPhoto
from .reminder import ReminderLog

__all__ = [
    "User",
    "Loan",
    "LoanPhoto",
    "ReminderLog",
]

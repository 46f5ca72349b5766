"""Dashboard counts derived from a loan collection. Pure, no I/O."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List

from loan_tracker.models.loan import Loan
from loan_tracker.schemas.loan import LoanStats
from loan_tracker.services.lifecycle import LoanStatus, derive_status


@dataclass
class LoanBuckets:
    active: List[Loan] = field(default_factory=list)
    overdue: List[Loan] = field(default_factory=list)
    returned: List[Loan] = field(default_factory=list)

    def bucket(self, status: LoanStatus) -> List[Loan]:
        return getattr(self, status.value)


def categorize(loans: Iterable[Loan], now: datetime) -> LoanBuckets:
    """Split loans into active/overdue/returned; each loan lands in exactly one."""
    buckets = LoanBuckets()
    for loan in loans:
        buckets.bucket(derive_status(loan, now)).append(loan)
    return buckets


def summarize(buckets: LoanBuckets) -> LoanStats:
    active, overdue, returned = len(buckets.active), len(buckets.overdue), len(buckets.returned)
    return LoanStats(active=active, overdue=overdue, returned=returned, total=active + overdue + returned)

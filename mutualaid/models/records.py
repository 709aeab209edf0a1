"""Plain records the delinquency engine and access policy compute over.

The records are detached from the database session so the core can be called
from request handlers, scripts and tests alike. ``delinquent_years`` and
``total_delinquent_amount`` are cached values; they are only ever produced by
``services.delinquency.update_member_delinquency``.
"""

import datetime
import re
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple, Union

from ..constants import MEMBER_NUMBER_PREFIX, MemberStatus

MEMBER_NUMBER_PATTERN = re.compile(rf"^{MEMBER_NUMBER_PREFIX}(\d{{4}})(\d{{4}})$")

DateLike = Union[datetime.date, str, None]


@dataclass(frozen=True)
class PaymentRecord:
    year: int
    amount: Decimal
    is_paid: bool = True
    date: Optional[datetime.date] = None


@dataclass(frozen=True)
class MemberRecord:
    member_number: str
    name: str
    status: MemberStatus = MemberStatus.ACTIVE
    registration_year: Optional[int] = None
    payments: Tuple[PaymentRecord, ...] = ()
    delinquent_years: int = 0
    total_delinquent_amount: Decimal = Decimal("0")
    id: Optional[int] = None
    date_of_birth: DateLike = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None

    def payment_for(self, year: int) -> Optional[PaymentRecord]:
        for payment in self.payments:
            if payment.year == year:
                return payment
        return None

    def is_paid_for(self, year: int) -> bool:
        payment = self.payment_for(year)
        return bool(payment and payment.is_paid)


@dataclass
class MemberSummary:
    total: int = 0
    by_status: dict = field(default_factory=dict)
    delinquent_members: int = 0
    total_delinquent_years: int = 0
    total_collectibles: Decimal = Decimal("0")
    expected_annual_fees: Decimal = Decimal("0")


def is_valid_member_number(value: Optional[str]) -> bool:
    if not value:
        return False
    return MEMBER_NUMBER_PATTERN.match(value) is not None


def find_duplicate_years(payments: Iterable[PaymentRecord]) -> List[int]:
    counts = Counter(payment.year for payment in payments)
    return sorted(year for year, count in counts.items() if count > 1)

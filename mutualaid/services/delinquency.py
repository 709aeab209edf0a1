"""Delinquency rules for annual dues.

A member owes dues for every year after the registration year up to and
including the current year; the registration year itself is a grace year.
Everything in this module is a pure function of the member record and the
year (or day) passed in, so results can be recomputed at any time.
"""

import datetime
import logging
import secrets
from dataclasses import replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Iterable, List, Optional, TypeVar

from ..constants import ANNUAL_FEE, MEMBER_NUMBER_PREFIX, TERMINAL_STATUSES, MemberStatus
from ..models.records import DateLike, MemberRecord, PaymentRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

DROPPED_THRESHOLD = 4
INACTIVE_THRESHOLD = 3


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    DELINQUENT = "Delinquent"


def _resolve_year(current_year: Optional[int]) -> int:
    return current_year if current_year is not None else datetime.date.today().year


def _coerce_status(value) -> Optional[MemberStatus]:
    try:
        return MemberStatus(value)
    except ValueError:
        return None


def _coerce_date(value: DateLike) -> Optional[datetime.date]:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return datetime.date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _valid_registration_year(value) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if value <= 0:
        return None
    return value


def get_unpaid_years(member: MemberRecord, current_year: Optional[int] = None) -> List[int]:
    """Years from ``registration_year + 1`` through ``current_year`` without a paid payment."""
    year_now = _resolve_year(current_year)
    registration_year = _valid_registration_year(member.registration_year)
    if registration_year is None:
        return []
    paid_years = {payment.year for payment in member.payments if payment.is_paid}
    return [year for year in range(registration_year + 1, year_now + 1) if year not in paid_years]


def calculate_delinquent_amount(member: MemberRecord, current_year: Optional[int] = None) -> Decimal:
    return len(get_unpaid_years(member, current_year)) * ANNUAL_FEE


def calculate_member_status(member: MemberRecord, current_year: Optional[int] = None) -> MemberStatus:
    stored = _coerce_status(member.status)
    if stored in TERMINAL_STATUSES:
        return stored

    year_now = _resolve_year(current_year)
    unpaid_count = len(get_unpaid_years(member, year_now))
    if unpaid_count >= DROPPED_THRESHOLD:
        return MemberStatus.DROPPED
    if unpaid_count >= INACTIVE_THRESHOLD or not member.is_paid_for(year_now):
        return MemberStatus.INACTIVE
    return MemberStatus.ACTIVE


def update_member_delinquency(member: MemberRecord, current_year: Optional[int] = None) -> MemberRecord:
    """Return a copy of ``member`` with every derived field recomputed."""
    year_now = _resolve_year(current_year)
    unpaid_count = len(get_unpaid_years(member, year_now))
    status = calculate_member_status(member, year_now)
    if status != _coerce_status(member.status):
        logger.debug(
            "Member %s status %s -> %s (%d unpaid years in %d)",
            member.member_number,
            member.status,
            status.value,
            unpaid_count,
            year_now,
        )
    return replace(
        member,
        delinquent_years=unpaid_count,
        total_delinquent_amount=unpaid_count * ANNUAL_FEE,
        status=status,
    )


def get_payment_status(member: MemberRecord, year: int, current_year: Optional[int] = None) -> PaymentStatus:
    if member.is_paid_for(year):
        return PaymentStatus.PAID
    if year == _resolve_year(current_year):
        return PaymentStatus.PENDING
    return PaymentStatus.DELINQUENT


def latest_paid_payment(member: MemberRecord) -> Optional[PaymentRecord]:
    paid = [payment for payment in member.payments if payment.is_paid]
    if not paid:
        return None
    return max(paid, key=lambda payment: payment.year)


def get_birthday_celebrants(members: Iterable[T], today: Optional[datetime.date] = None) -> List[T]:
    """Members whose date of birth falls on today's month and day.

    Works on any object exposing ``date_of_birth``; missing or malformed
    dates never match.
    """
    today = today or datetime.date.today()
    celebrants: List[T] = []
    for member in members:
        birth_date = _coerce_date(getattr(member, "date_of_birth", None))
        if birth_date is None:
            continue
        if (birth_date.month, birth_date.day) == (today.month, today.day):
            celebrants.append(member)
    return celebrants


def generate_member_number(year: Optional[int] = None, randbelow: Callable[[int], int] = secrets.randbelow) -> str:
    return f"{MEMBER_NUMBER_PREFIX}{_resolve_year(year)}{randbelow(10000):04d}"

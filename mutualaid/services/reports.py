from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence

from ..constants import ANNUAL_FEE, EXPORT_START_YEAR, MemberStatus
from ..models.records import MemberRecord, MemberSummary
from ..utils.csv_utils import rows_to_csv
from .delinquency import PaymentStatus, get_payment_status


@dataclass
class CsvReport:
    filename: str
    content: str


@dataclass
class YearPayment:
    year: int
    amount: Decimal
    date: Optional[date]
    is_paid: bool


@dataclass
class PaymentHistoryRow:
    member: MemberRecord
    payments: List[YearPayment] = field(default_factory=list)
    total_paid: Decimal = Decimal("0")
    years_paid: int = 0


@dataclass
class PaymentHistory:
    start_year: int
    end_year: int
    rows: List[PaymentHistoryRow]
    grand_total: Decimal


def summarize_members(members: Sequence[MemberRecord]) -> MemberSummary:
    summary = MemberSummary(total=len(members))
    summary.by_status = {status.value: 0 for status in MemberStatus}
    for member in members:
        status = MemberStatus(member.status).value
        summary.by_status[status] += 1
        if member.delinquent_years > 0:
            summary.delinquent_members += 1
            summary.total_delinquent_years += member.delinquent_years
            summary.total_collectibles += member.total_delinquent_amount
    summary.expected_annual_fees = len(members) * ANNUAL_FEE
    return summary


def filter_members(
    members: Iterable[MemberRecord],
    search: Optional[str] = None,
    status: Optional[MemberStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    current_year: Optional[int] = None,
) -> List[MemberRecord]:
    """Search by name or member number, then narrow by status and this year's payment state."""
    current_year = current_year or date.today().year
    needle = (search or "").strip().lower()
    matches: List[MemberRecord] = []
    for member in members:
        if needle and needle not in member.name.lower() and needle not in member.member_number.lower():
            continue
        if status is not None and MemberStatus(member.status) != status:
            continue
        if payment_status is not None and get_payment_status(member, current_year, current_year) != payment_status:
            continue
        matches.append(member)
    return matches


def build_payment_history(members: Iterable[MemberRecord], start_year: int, end_year: int) -> PaymentHistory:
    if start_year > end_year:
        raise ValueError("start_year must not be after end_year")
    years = range(start_year, end_year + 1)
    rows: List[PaymentHistoryRow] = []
    for member in members:
        row = PaymentHistoryRow(member=member)
        for year in years:
            payment = member.payment_for(year)
            if payment and payment.is_paid:
                row.payments.append(YearPayment(year=year, amount=payment.amount, date=payment.date, is_paid=True))
                row.total_paid += payment.amount
                row.years_paid += 1
            else:
                row.payments.append(YearPayment(year=year, amount=Decimal("0"), date=None, is_paid=False))
        rows.append(row)
    grand_total = sum((row.total_paid for row in rows), Decimal("0"))
    return PaymentHistory(start_year=start_year, end_year=end_year, rows=rows, grand_total=grand_total)


def export_headers(current_year: int) -> List[str]:
    headers = ["NO.", "NAME", "MEMBERSHIP STATUS"]
    for year in range(EXPORT_START_YEAR, current_year + 1):
        headers.extend([f"YEAR {year} Date", f"YEAR {year} Amount"])
    headers.extend(["YEARS OF DELINQUENT", "TOTAL AMOUNT"])
    return headers


def export_rows(members: Iterable[MemberRecord], current_year: int) -> List[List[object]]:
    """One row per member; unpaid years are left blank."""
    rows: List[List[object]] = []
    for member in members:
        row: List[object] = [member.member_number, member.name, MemberStatus(member.status)]
        for year in range(EXPORT_START_YEAR, current_year + 1):
            payment = member.payment_for(year)
            if payment and payment.is_paid:
                row.extend([payment.date, payment.amount])
            else:
                row.extend([None, None])
        row.extend([member.delinquent_years, member.total_delinquent_amount])
        rows.append(row)
    return rows


def generate_member_export(members: Sequence[MemberRecord], today: Optional[date] = None) -> CsvReport:
    today = today or date.today()
    content = rows_to_csv(export_headers(today.year), export_rows(members, today.year))
    return CsvReport(filename=f"members-{today.isoformat()}.csv", content=content)

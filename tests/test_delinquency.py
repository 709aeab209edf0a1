from datetime import date
from decimal import Decimal

import pytest

from mutualaid.constants import ANNUAL_FEE, MemberStatus
from mutualaid.models.records import MemberRecord, PaymentRecord
from mutualaid.services.delinquency import (
    PaymentStatus,
    calculate_delinquent_amount,
    calculate_member_status,
    generate_member_number,
    get_birthday_celebrants,
    get_payment_status,
    get_unpaid_years,
    latest_paid_payment,
    update_member_delinquency,
)


def _member(registration_year, paid_years=(), status=MemberStatus.ACTIVE, **extra) -> MemberRecord:
    payments = tuple(PaymentRecord(year=year, amount=ANNUAL_FEE, date=date(year, 2, 1)) for year in paid_years)
    return MemberRecord(
        member_number="GM20200001",
        name="Juan Dela Cruz",
        status=status,
        registration_year=registration_year,
        payments=payments,
        **extra,
    )


def test_registration_year_is_a_grace_year():
    member = _member(2024)
    assert get_unpaid_years(member, 2024) == []
    assert calculate_delinquent_amount(member, 2024) == Decimal("0")


def test_registration_after_current_year_has_no_unpaid_years():
    assert get_unpaid_years(_member(2026), 2024) == []


@pytest.mark.parametrize("registration_year", [None, -5, 0, "2020", True])
def test_malformed_registration_year_yields_no_delinquency(registration_year):
    member = _member(registration_year)
    assert get_unpaid_years(member, 2024) == []
    updated = update_member_delinquency(member, 2024)
    assert updated.delinquent_years == 0
    assert updated.total_delinquent_amount == Decimal("0")


def test_worked_example_three_unpaid_years_is_inactive():
    member = _member(2020, paid_years=(2020, 2022))

    assert get_unpaid_years(member, 2024) == [2021, 2023, 2024]
    updated = update_member_delinquency(member, 2024)
    assert updated.delinquent_years == 3
    assert updated.total_delinquent_amount == Decimal("2340")
    assert updated.status == MemberStatus.INACTIVE


def test_paying_current_year_restores_active_status():
    member = _member(2020, paid_years=(2020, 2022, 2024))

    assert get_unpaid_years(member, 2024) == [2021, 2023]
    updated = update_member_delinquency(member, 2024)
    assert updated.delinquent_years == 2
    assert updated.total_delinquent_amount == Decimal("1560")
    assert updated.status == MemberStatus.ACTIVE


def test_five_unpaid_years_drops_an_active_member():
    member = _member(2019)
    updated = update_member_delinquency(member, 2024)
    assert updated.delinquent_years == 5
    assert updated.status == MemberStatus.DROPPED


def test_exactly_four_unpaid_years_is_dropped():
    member = _member(2020, paid_years=(2024,))
    assert get_unpaid_years(member, 2024) == [2021, 2022, 2023]
    assert calculate_member_status(member, 2024) == MemberStatus.INACTIVE

    member = _member(2019, paid_years=(2024,))
    assert len(get_unpaid_years(member, 2024)) == 4
    assert calculate_member_status(member, 2024) == MemberStatus.DROPPED


def test_unpaid_current_year_alone_makes_member_inactive():
    member = _member(2022, paid_years=(2023,))
    assert get_unpaid_years(member, 2024) == [2024]
    assert calculate_member_status(member, 2024) == MemberStatus.INACTIVE


def test_new_member_without_current_payment_is_inactive():
    assert calculate_member_status(_member(2024), 2024) == MemberStatus.INACTIVE
    assert calculate_member_status(_member(2024, paid_years=(2024,)), 2024) == MemberStatus.ACTIVE


def test_dropped_member_recovers_when_paid_up():
    member = _member(2020, paid_years=(2021, 2022, 2023, 2024), status=MemberStatus.DROPPED)
    assert calculate_member_status(member, 2024) == MemberStatus.ACTIVE


@pytest.mark.parametrize("status", [MemberStatus.DECEASED, MemberStatus.SERVED])
def test_terminal_statuses_are_kept_regardless_of_payments(status):
    unpaid = _member(2015, status=status)
    paid = _member(2020, paid_years=(2021, 2022, 2023, 2024), status=status)

    assert update_member_delinquency(unpaid, 2024).status == status
    assert update_member_delinquency(paid, 2024).status == status
    # Derived amounts are still recomputed for terminal members.
    assert update_member_delinquency(unpaid, 2024).delinquent_years == 9


def test_terminal_status_given_as_plain_string_is_kept():
    member = _member(2015, status="Deceased")
    assert calculate_member_status(member, 2024) == MemberStatus.DECEASED


def test_unpaid_payment_rows_count_as_unpaid():
    member = MemberRecord(
        member_number="GM20200002",
        name="Maria",
        registration_year=2022,
        payments=(
            PaymentRecord(year=2023, amount=ANNUAL_FEE, is_paid=False),
            PaymentRecord(year=2024, amount=ANNUAL_FEE),
        ),
    )
    assert get_unpaid_years(member, 2024) == [2023]


@pytest.mark.parametrize(
    "registration_year,paid_years",
    [(2010, ()), (2018, (2019, 2021)), (2020, (2021, 2022, 2023, 2024)), (2024, ())],
)
def test_update_is_consistent_and_idempotent(registration_year, paid_years):
    member = _member(registration_year, paid_years=paid_years)

    once = update_member_delinquency(member, 2024)
    twice = update_member_delinquency(once, 2024)

    assert once.delinquent_years == len(get_unpaid_years(member, 2024))
    assert once.total_delinquent_amount == once.delinquent_years * ANNUAL_FEE
    assert twice == once


def test_update_returns_a_new_record():
    member = _member(2019)
    updated = update_member_delinquency(member, 2024)
    assert updated is not member
    assert member.delinquent_years == 0
    assert member.status == MemberStatus.ACTIVE


def test_payment_status_per_year():
    member = _member(2020, paid_years=(2021,))
    assert get_payment_status(member, 2021, 2024) == PaymentStatus.PAID
    assert get_payment_status(member, 2022, 2024) == PaymentStatus.DELINQUENT
    assert get_payment_status(member, 2024, 2024) == PaymentStatus.PENDING


def test_latest_paid_payment_ignores_unpaid_rows():
    member = MemberRecord(
        member_number="GM20200003",
        name="Pedro",
        registration_year=2020,
        payments=(
            PaymentRecord(year=2021, amount=ANNUAL_FEE),
            PaymentRecord(year=2023, amount=ANNUAL_FEE, is_paid=False),
        ),
    )
    assert latest_paid_payment(member).year == 2021
    assert latest_paid_payment(_member(2020)) is None


def test_birthday_matches_month_and_day_only():
    member = _member(2020, date_of_birth=date(1990, 3, 15))
    assert get_birthday_celebrants([member], date(2024, 3, 15)) == [member]
    assert get_birthday_celebrants([member], date(2024, 3, 16)) == []


def test_birthday_accepts_iso_strings_and_skips_bad_values():
    iso = _member(2020, date_of_birth="1985-07-04")
    missing = _member(2020)
    garbage = _member(2020, date_of_birth="not-a-date")

    celebrants = get_birthday_celebrants([iso, missing, garbage], date(2024, 7, 4))

    assert celebrants == [iso]


def test_leap_day_birthdays_only_match_on_leap_day():
    member = _member(2020, date_of_birth=date(1992, 2, 29))
    assert get_birthday_celebrants([member], date(2024, 2, 29)) == [member]
    assert get_birthday_celebrants([member], date(2023, 2, 28)) == []
    assert get_birthday_celebrants([member], date(2023, 3, 1)) == []


def test_member_number_format():
    assert generate_member_number(2024, randbelow=lambda _: 42) == "GM20240042"
    number = generate_member_number(2025)
    assert number.startswith("GM2025")
    assert len(number) == 10

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional

from sqlalchemy.orm import Session, selectinload

from ..constants import ANNUAL_FEE, MemberStatus
from ..core.errors import MemberNotFoundError, MemberNumberExhaustedError, PaymentNotFoundError
from ..models.models import Member, MemberPayment, User
from ..models.records import MemberRecord, PaymentRecord
from .activity import log_activity
from .delinquency import generate_member_number, update_member_delinquency

logger = logging.getLogger(__name__)

MEMBER_NUMBER_ATTEMPTS = 50
# Columns a partial update may not clear.
REQUIRED_MEMBER_FIELDS = ("name", "registration_year", "status")


def _ensure_decimal(amount: Decimal | float | int | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def _snapshot(member: Member) -> Dict[str, Any]:
    return {column.name: getattr(member, column.name) for column in Member.__table__.columns}


def to_record(member: Member) -> MemberRecord:
    try:
        status = MemberStatus(member.status)
    except ValueError:
        status = MemberStatus.INACTIVE
    return MemberRecord(
        id=member.id,
        member_number=member.member_number,
        name=member.name,
        status=status,
        registration_year=member.registration_year,
        date_of_birth=member.date_of_birth,
        email=member.email,
        phone=member.phone,
        address=member.address,
        notes=member.notes,
        payments=tuple(
            PaymentRecord(
                year=payment.year,
                amount=_ensure_decimal(payment.amount),
                is_paid=bool(payment.is_paid),
                date=payment.date,
            )
            for payment in member.payments
        ),
        delinquent_years=member.delinquent_years or 0,
        total_delinquent_amount=_ensure_decimal(member.total_delinquent_amount or 0),
    )


def apply_record(member: Member, record: MemberRecord) -> Member:
    member.status = record.status.value
    member.delinquent_years = record.delinquent_years
    member.total_delinquent_amount = record.total_delinquent_amount
    return member


def refresh_delinquency(member: Member, current_year: Optional[int] = None) -> Member:
    return apply_record(member, update_member_delinquency(to_record(member), current_year))


def get_member_or_404(session: Session, member_id: int) -> Member:
    member = session.get(Member, member_id)
    if not member:
        raise MemberNotFoundError("Member not found")
    return member


def get_member_by_number(session: Session, member_number: str) -> Optional[Member]:
    return session.query(Member).filter(Member.member_number == member_number).first()


def member_for_user(session: Session, user: User) -> Optional[Member]:
    if not user.member_number:
        return None
    return get_member_by_number(session, user.member_number)


def list_members(session: Session) -> list[Member]:
    return (
        session.query(Member)
        .options(selectinload(Member.payments))
        .order_by(Member.member_number.asc())
        .all()
    )


def allocate_member_number(session: Session, year: int) -> str:
    for _ in range(MEMBER_NUMBER_ATTEMPTS):
        candidate = generate_member_number(year)
        if not get_member_by_number(session, candidate):
            return candidate
    raise MemberNumberExhaustedError(f"Could not allocate a free member number for {year}")


def register_member(
    session: Session,
    data: Dict[str, Any],
    actor: Optional[User],
    payments: Iterable[Dict[str, Any]] = (),
    today: Optional[date] = None,
) -> Member:
    today = today or date.today()
    fields = dict(data)
    registration_year = fields.pop("registration_year", None) or today.year
    member_number = fields.pop("member_number", None) or allocate_member_number(session, today.year)
    fields["registration_date"] = fields.get("registration_date") or today
    fields["status"] = MemberStatus(fields.get("status") or MemberStatus.ACTIVE).value

    member = Member(member_number=member_number, registration_year=registration_year, **fields)
    for payment in payments:
        member.payments.append(
            MemberPayment(
                year=payment["year"],
                amount=_ensure_decimal(payment.get("amount", ANNUAL_FEE)),
                date=payment.get("date"),
                is_paid=payment.get("is_paid", True),
            )
        )
    refresh_delinquency(member, today.year)
    session.add(member)
    session.commit()
    session.refresh(member)

    log_activity(
        session,
        actor,
        "member_added",
        f"Registered {member.name} ({member.member_number})",
        target_entity_type="Member",
        target_entity_id=str(member.id),
        details={"registration_year": member.registration_year, "status": member.status},
    )
    return member


def update_member(
    session: Session,
    member: Member,
    changes: Dict[str, Any],
    actor: Optional[User],
    current_year: Optional[int] = None,
) -> Member:
    changes = {
        field: value for field, value in changes.items() if not (value is None and field in REQUIRED_MEMBER_FIELDS)
    }
    before = _snapshot(member)
    for field, value in changes.items():
        if field == "status":
            value = MemberStatus(value).value
        setattr(member, field, value)
    refresh_delinquency(member, current_year)
    session.add(member)
    session.commit()
    session.refresh(member)

    status_requested = "status" in changes
    activity_type = "status_changed" if status_requested else "member_updated"
    if status_requested:
        description = f"Status of {member.name} set to {member.status}"
    else:
        description = f"Updated details of {member.name}"
    log_activity(
        session,
        actor,
        activity_type,
        description,
        target_entity_type="Member",
        target_entity_id=str(member.id),
        details={"before": before, "after": _snapshot(member)},
    )
    return member


def update_member_files(session: Session, member: Member, changes: Dict[str, Optional[str]], actor: Optional[User]) -> Member:
    for field, value in changes.items():
        setattr(member, field, value)
    session.add(member)
    session.commit()
    session.refresh(member)
    log_activity(
        session,
        actor,
        "profile_updated",
        f"Updated files of {member.name}",
        target_entity_type="Member",
        target_entity_id=str(member.id),
        details=changes,
    )
    return member


def delete_member(session: Session, member: Member, actor: Optional[User]) -> None:
    snapshot = _snapshot(member)
    snapshot["payments"] = [
        {"year": payment.year, "amount": payment.amount, "date": payment.date, "is_paid": payment.is_paid}
        for payment in member.payments
    ]
    member_id = member.id
    name = member.name
    session.delete(member)
    session.commit()
    logger.warning("Member %s (%s) deleted", member_id, snapshot["member_number"])
    log_activity(
        session,
        actor,
        "member_deleted",
        f"Deleted member {name} ({snapshot['member_number']})",
        target_entity_type="Member",
        target_entity_id=str(member_id),
        details=snapshot,
    )


def _find_payment(member: Member, year: int) -> Optional[MemberPayment]:
    for payment in member.payments:
        if payment.year == year:
            return payment
    return None


def add_payment(
    session: Session,
    member: Member,
    year: int,
    amount: Decimal | float | int,
    actor: Optional[User],
    paid_on: Optional[date] = None,
    today: Optional[date] = None,
) -> MemberPayment:
    """Record a paid year, replacing any existing record for that year."""
    today = today or date.today()
    payment = _find_payment(member, year)
    if payment is None:
        payment = MemberPayment(year=year)
        member.payments.append(payment)
    payment.amount = _ensure_decimal(amount)
    payment.date = paid_on or today
    payment.is_paid = True
    refresh_delinquency(member, today.year)
    session.add(member)
    session.commit()
    session.refresh(payment)

    log_activity(
        session,
        actor,
        "payment_added",
        f"Payment of {payment.amount} for {year} recorded for {member.name}",
        target_entity_type="Member",
        target_entity_id=str(member.id),
        details={"year": year, "amount": payment.amount, "date": payment.date},
    )
    return payment


def update_payment(
    session: Session,
    member: Member,
    year: int,
    changes: Dict[str, Any],
    actor: Optional[User],
    current_year: Optional[int] = None,
) -> MemberPayment:
    payment = _find_payment(member, year)
    if payment is None:
        raise PaymentNotFoundError(f"No payment recorded for {year}")
    before = {"amount": payment.amount, "date": payment.date, "is_paid": payment.is_paid}
    for field, value in changes.items():
        if field in ("amount", "is_paid") and value is None:
            continue
        if field == "amount":
            value = _ensure_decimal(value)
        setattr(payment, field, value)
    refresh_delinquency(member, current_year)
    session.add(member)
    session.commit()
    session.refresh(payment)

    log_activity(
        session,
        actor,
        "payment_updated",
        f"Payment for {year} updated for {member.name}",
        target_entity_type="Member",
        target_entity_id=str(member.id),
        details={"year": year, "before": before, "after": changes},
    )
    return payment


def refresh_all_delinquency(
    session: Session,
    current_year: Optional[int] = None,
    actor: Optional[User] = None,
) -> int:
    """Recompute cached delinquency for every member; returns how many changed.

    Members whose status moves get a ``status_changed`` activity each.
    """
    changed = 0
    moved = []
    for member in list_members(session):
        before = (member.status, member.delinquent_years, _ensure_decimal(member.total_delinquent_amount or 0))
        refresh_delinquency(member, current_year)
        after = (member.status, member.delinquent_years, _ensure_decimal(member.total_delinquent_amount))
        if before != after:
            changed += 1
            session.add(member)
        if before[0] != after[0]:
            moved.append((member, before[0]))
    session.commit()
    for member, previous_status in moved:
        log_activity(
            session,
            actor,
            "status_changed",
            f"Status of {member.name} recomputed from {previous_status} to {member.status}",
            target_entity_type="Member",
            target_entity_id=str(member.id),
            details={"before": previous_status, "after": member.status},
        )
    if changed:
        logger.info("Recomputed delinquency for %d member(s)", changed)
    return changed

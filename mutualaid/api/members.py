import datetime as dt
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import get_current_user, require_function
from ..constants import (
    FN_ADD_FILES,
    FN_ADD_MEMBERS,
    FN_ADD_PAYMENT,
    FN_ASSIGN_STATUS,
    FN_CERTIFICATE,
    FN_DELETE_MEMBERS,
    FN_MANAGE_PICTURES,
    FN_UPDATE_PAYMENT,
    FN_VIEW_ALL_PAYMENTS,
    FN_VIEW_LATEST_PAYMENTS,
)
from ..models.models import Member, User
from ..schemas.schemas import (
    MemberCreate,
    MemberDetail,
    MemberFilesUpdate,
    MemberListItem,
    MemberRead,
    MemberStatusUpdate,
    MemberUpdate,
    PaymentCreate,
    PaymentRead,
    PaymentUpdate,
    ProfilePictureUpdate,
    RecomputeResult,
)
from ..services import members as member_service
from ..services.access import has_access
from ..services.delinquency import get_birthday_celebrants, get_unpaid_years, latest_paid_payment
from ..utils.pdf_utils import generate_membership_certificate

router = APIRouter()


def _to_list_item(member: Member) -> MemberListItem:
    latest = latest_paid_payment(member_service.to_record(member))
    item = MemberListItem.model_validate(member)
    if latest is None:
        return item
    return item.model_copy(
        update={"latest_payment": PaymentRead(year=latest.year, amount=latest.amount, date=latest.date, is_paid=latest.is_paid)}
    )


def _to_detail(member: Member) -> MemberDetail:
    detail = MemberDetail.model_validate(member)
    return detail.model_copy(update={"unpaid_years": get_unpaid_years(member_service.to_record(member))})


def _ensure_payment_history_access(db: Session, user: User, member: Member) -> None:
    if has_access(user.role, FN_VIEW_ALL_PAYMENTS):
        return
    own_member = member_service.member_for_user(db, user)
    if own_member is not None and own_member.id == member.id:
        return
    raise HTTPException(status_code=403, detail="Not allowed to view this member's payment history")


@router.get("/", response_model=List[MemberListItem])
def list_members(
    db: Session = Depends(get_db),
    _: User = Depends(require_function(FN_VIEW_LATEST_PAYMENTS)),
) -> List[MemberListItem]:
    return [_to_list_item(member) for member in member_service.list_members(db)]


@router.get("/birthdays", response_model=List[MemberRead])
def list_birthday_celebrants(
    on: Optional[dt.date] = Query(None, description="Day to check; defaults to today"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[Member]:
    return get_birthday_celebrants(member_service.list_members(db), on or dt.date.today())


@router.post("/recompute", response_model=RecomputeResult)
def recompute_delinquency(
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_ASSIGN_STATUS)),
) -> RecomputeResult:
    return RecomputeResult(updated=member_service.refresh_all_delinquency(db, actor=actor))


@router.get("/me", response_model=MemberDetail)
def read_my_member_record(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MemberDetail:
    member = member_service.member_for_user(db, user)
    if not member:
        raise HTTPException(status_code=404, detail="Member record not linked to current user")
    return _to_detail(member)


@router.post("/", response_model=MemberRead)
def register_member(
    payload: MemberCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_ADD_MEMBERS)),
) -> Member:
    data = payload.model_dump(exclude={"payments"})
    payments = [payment.model_dump() for payment in payload.payments]
    return member_service.register_member(db, data, actor, payments=payments)


@router.get("/{member_id}", response_model=MemberListItem)
def get_member(
    member_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_function(FN_VIEW_LATEST_PAYMENTS)),
) -> MemberListItem:
    return _to_list_item(member_service.get_member_or_404(db, member_id))


@router.get("/{member_id}/payments", response_model=MemberDetail)
def get_member_payments(
    member_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> MemberDetail:
    member = member_service.get_member_or_404(db, member_id)
    _ensure_payment_history_access(db, user, member)
    return _to_detail(member)


@router.put("/{member_id}", response_model=MemberRead)
def update_member(
    member_id: int,
    payload: MemberUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_ADD_MEMBERS)),
) -> Member:
    member = member_service.get_member_or_404(db, member_id)
    return member_service.update_member(db, member, payload.model_dump(exclude_unset=True), actor)


@router.put("/{member_id}/status", response_model=MemberRead)
def assign_status(
    member_id: int,
    payload: MemberStatusUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_ASSIGN_STATUS)),
) -> Member:
    member = member_service.get_member_or_404(db, member_id)
    return member_service.update_member(db, member, {"status": payload.status}, actor)


@router.put("/{member_id}/files", response_model=MemberRead)
def update_member_files(
    member_id: int,
    payload: MemberFilesUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_ADD_FILES)),
) -> Member:
    member = member_service.get_member_or_404(db, member_id)
    return member_service.update_member_files(db, member, payload.model_dump(exclude_unset=True), actor)


@router.put("/{member_id}/profile-picture", response_model=MemberRead)
def update_member_picture(
    member_id: int,
    payload: ProfilePictureUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_MANAGE_PICTURES)),
) -> Member:
    member = member_service.get_member_or_404(db, member_id)
    return member_service.update_member_files(db, member, {"profile_picture": payload.profile_picture}, actor)


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_member(
    member_id: int,
    confirm: bool = Query(False, description="Must be true; deletion cannot be undone"),
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_DELETE_MEMBERS)),
) -> Response:
    member = member_service.get_member_or_404(db, member_id)
    if not confirm:
        raise HTTPException(status_code=400, detail="Deleting a member is permanent; repeat with confirm=true")
    member_service.delete_member(db, member, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{member_id}/payments", response_model=PaymentRead)
def add_payment(
    member_id: int,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_ADD_PAYMENT)),
):
    member = member_service.get_member_or_404(db, member_id)
    return member_service.add_payment(db, member, payload.year, payload.amount, actor, paid_on=payload.date)


@router.put("/{member_id}/payments/{year}", response_model=PaymentRead)
def update_payment(
    member_id: int,
    year: int,
    payload: PaymentUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_UPDATE_PAYMENT)),
):
    member = member_service.get_member_or_404(db, member_id)
    return member_service.update_payment(db, member, year, payload.model_dump(exclude_unset=True), actor)


@router.get("/{member_id}/certificate")
def print_certificate(
    member_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(require_function(FN_CERTIFICATE)),
) -> FileResponse:
    member = member_service.get_member_or_404(db, member_id)
    path = generate_membership_certificate(member)
    return FileResponse(path, media_type="application/pdf", filename=f"certificate_{member.member_number}.pdf")

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import get_current_user, require_function
from ..constants import FN_MANAGE_PICTURES
from ..models.models import Member, Officer, User
from ..schemas.schemas import OfficerCreate, OfficerRead, OfficerUpdate
from ..services.access import can_view_tab
from ..services.activity import log_activity

router = APIRouter()


def _get_officer_or_404(db: Session, officer_id: int) -> Officer:
    officer = db.get(Officer, officer_id)
    if not officer:
        raise HTTPException(status_code=404, detail="Officer not found")
    return officer


def _ensure_member_exists(db: Session, member_id) -> None:
    if member_id is not None and not db.get(Member, member_id):
        raise HTTPException(status_code=404, detail="Member not found")


@router.get("/", response_model=List[OfficerRead])
def list_officers(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> List[Officer]:
    if not can_view_tab(user.role, "officers"):
        raise HTTPException(status_code=403, detail="Operation not permitted for your role")
    return db.query(Officer).order_by(Officer.id.asc()).all()


@router.post("/", response_model=OfficerRead)
def create_officer(
    payload: OfficerCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_MANAGE_PICTURES)),
) -> Officer:
    _ensure_member_exists(db, payload.member_id)
    officer = Officer(**payload.model_dump())
    db.add(officer)
    db.commit()
    db.refresh(officer)
    log_activity(
        db,
        actor,
        "officer_added",
        f"Added officer {officer.name} ({officer.position})",
        target_entity_type="Officer",
        target_entity_id=str(officer.id),
    )
    return officer


@router.put("/{officer_id}", response_model=OfficerRead)
def update_officer(
    officer_id: int,
    payload: OfficerUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_MANAGE_PICTURES)),
) -> Officer:
    officer = _get_officer_or_404(db, officer_id)
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field not in ("name", "position")
    }
    if "member_id" in changes:
        _ensure_member_exists(db, changes["member_id"])
    for field, value in changes.items():
        setattr(officer, field, value)
    db.add(officer)
    db.commit()
    db.refresh(officer)
    log_activity(
        db,
        actor,
        "officer_updated",
        f"Updated officer {officer.name}",
        target_entity_type="Officer",
        target_entity_id=str(officer.id),
        details=changes,
    )
    return officer


@router.delete("/{officer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_officer(
    officer_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_MANAGE_PICTURES)),
) -> Response:
    officer = _get_officer_or_404(db, officer_id)
    name = officer.name
    db.delete(officer)
    db.commit()
    log_activity(
        db,
        actor,
        "officer_deleted",
        f"Removed officer {name}",
        target_entity_type="Officer",
        target_entity_id=str(officer_id),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)

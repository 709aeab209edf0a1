from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import get_current_user, require_function
from ..constants import FN_MILESTONES
from ..models.models import Milestone, User
from ..schemas.schemas import MilestoneBase, MilestoneRead, MilestoneUpdate
from ..services.activity import log_activity

router = APIRouter()


def _get_milestone_or_404(db: Session, milestone_id: int) -> Milestone:
    milestone = db.get(Milestone, milestone_id)
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")
    return milestone


@router.get("/", response_model=List[MilestoneRead])
def list_milestones(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[Milestone]:
    query = db.query(Milestone)
    if not include_inactive:
        query = query.filter(Milestone.is_active.is_(True))
    return query.order_by(Milestone.age.asc()).all()


@router.post("/", response_model=MilestoneRead)
def create_milestone(
    payload: MilestoneBase,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_MILESTONES)),
) -> Milestone:
    milestone = Milestone(**payload.model_dump())
    db.add(milestone)
    db.commit()
    db.refresh(milestone)
    log_activity(
        db,
        actor,
        "milestone_saved",
        f"Saved milestone for age {milestone.age}",
        target_entity_type="Milestone",
        target_entity_id=str(milestone.id),
        details=payload.model_dump(),
    )
    return milestone


@router.put("/{milestone_id}", response_model=MilestoneRead)
def update_milestone(
    milestone_id: int,
    payload: MilestoneUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_MILESTONES)),
) -> Milestone:
    milestone = _get_milestone_or_404(db, milestone_id)
    changes = {field: value for field, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    for field, value in changes.items():
        setattr(milestone, field, value)
    db.add(milestone)
    db.commit()
    db.refresh(milestone)
    log_activity(
        db,
        actor,
        "milestone_saved",
        f"Saved milestone for age {milestone.age}",
        target_entity_type="Milestone",
        target_entity_id=str(milestone.id),
        details=changes,
    )
    return milestone


@router.delete("/{milestone_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_milestone(
    milestone_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_MILESTONES)),
) -> Response:
    milestone = _get_milestone_or_404(db, milestone_id)
    age = milestone.age
    db.delete(milestone)
    db.commit()
    log_activity(
        db,
        actor,
        "milestone_deleted",
        f"Deleted milestone for age {age}",
        target_entity_type="Milestone",
        target_entity_id=str(milestone_id),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)

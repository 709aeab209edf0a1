from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import get_current_user
from ..constants import RECENT_ACTIVITY_LIMIT
from ..models.models import ActivityLog, User
from ..schemas.schemas import ActivityRead
from ..services.activity import recent_activities

router = APIRouter()


@router.get("/", response_model=List[ActivityRead])
def list_recent_activity(
    limit: int = Query(RECENT_ACTIVITY_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> List[ActivityLog]:
    return recent_activities(db, limit=limit)

import json
import logging
from typing import Any, List, Optional

from sqlalchemy.orm import Session, joinedload

from ..constants import ACTIVITY_TYPES, RECENT_ACTIVITY_LIMIT
from ..models.models import ActivityLog, User, utcnow

logger = logging.getLogger(__name__)


def _serialize(data: Any) -> Optional[str]:
    if data is None:
        return None
    try:
        return json.dumps(data, default=str)
    except TypeError:
        return str(data)


def log_activity(
    db_session: Session,
    actor: Optional[User],
    activity_type: str,
    description: str,
    target_entity_type: Optional[str] = None,
    target_entity_id: Optional[str] = None,
    details: Any = None,
) -> ActivityLog:
    if activity_type not in ACTIVITY_TYPES:
        raise ValueError(f"Unknown activity type: {activity_type}")
    entry = ActivityLog(
        timestamp=utcnow(),
        actor_user_id=actor.id if actor else None,
        actor_name=actor.display_name if actor else None,
        activity_type=activity_type,
        description=description,
        target_entity_type=target_entity_type,
        target_entity_id=target_entity_id,
        details=_serialize(details),
    )
    db_session.add(entry)
    db_session.commit()
    logger.info("%s: %s", activity_type, description)
    return entry


def recent_activities(db_session: Session, limit: int = RECENT_ACTIVITY_LIMIT) -> List[ActivityLog]:
    return (
        db_session.query(ActivityLog)
        .options(joinedload(ActivityLog.actor))
        .order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        .limit(limit)
        .all()
    )

from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import get_current_user, require_function
from ..constants import FN_BULLETIN
from ..models.models import BulletinPost, User
from ..schemas.schemas import BulletinPostCreate, BulletinPostRead, BulletinPostUpdate
from ..services.access import has_access
from ..services.activity import log_activity

router = APIRouter()


def _get_post_or_404(db: Session, post_id: int) -> BulletinPost:
    post = db.get(BulletinPost, post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Bulletin post not found")
    return post


@router.get("/", response_model=List[BulletinPostRead])
def list_posts(
    include_inactive: bool = Query(False, description="Only honoured for roles that manage the bulletin"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> List[BulletinPost]:
    query = db.query(BulletinPost)
    if not (include_inactive and has_access(user.role, FN_BULLETIN)):
        query = query.filter(BulletinPost.is_active.is_(True))
    return query.order_by(BulletinPost.date.desc(), BulletinPost.id.desc()).all()


@router.post("/", response_model=BulletinPostRead)
def create_post(
    payload: BulletinPostCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_BULLETIN)),
) -> BulletinPost:
    post = BulletinPost(
        title=payload.title,
        content=payload.content,
        date=payload.date or date.today(),
        is_active=payload.is_active,
        author=actor.display_name,
        created_by_user_id=actor.id,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    log_activity(
        db,
        actor,
        "bulletin_posted",
        f"Posted bulletin: {post.title}",
        target_entity_type="BulletinPost",
        target_entity_id=str(post.id),
    )
    return post


@router.put("/{post_id}", response_model=BulletinPostRead)
def update_post(
    post_id: int,
    payload: BulletinPostUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_BULLETIN)),
) -> BulletinPost:
    post = _get_post_or_404(db, post_id)
    changes = {field: value for field, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    for field, value in changes.items():
        setattr(post, field, value)
    db.add(post)
    db.commit()
    db.refresh(post)
    log_activity(
        db,
        actor,
        "bulletin_posted",
        f"Edited bulletin: {post.title}",
        target_entity_type="BulletinPost",
        target_entity_id=str(post.id),
        details=changes,
    )
    return post


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_post(
    post_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_BULLETIN)),
) -> Response:
    post = _get_post_or_404(db, post_id)
    title = post.title
    db.delete(post)
    db.commit()
    log_activity(
        db,
        actor,
        "bulletin_deleted",
        f"Removed bulletin: {title}",
        target_entity_type="BulletinPost",
        target_entity_id=str(post_id),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)

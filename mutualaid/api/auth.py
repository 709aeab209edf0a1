import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..auth.jwt import (
    REFRESH_TOKEN,
    authenticate_user,
    create_access_token,
    create_refresh_token,
    get_current_user,
    get_password_hash,
    read_subject,
    require_function,
    require_roles,
)
from ..constants import FN_APPROVE_ACCOUNTS, FN_LINK_MEMBER, FN_OWN_PROFILE_PICTURE, Role
from ..core.rate_limit import limit_requests
from ..models.models import User
from ..schemas.schemas import (
    MemberLink,
    NavigationRead,
    ProfilePictureUpdate,
    SystemFunctionRead,
    Token,
    TokenRefreshRequest,
    UserApproval,
    UserCreate,
    UserRead,
    UserSelfUpdate,
)
from ..services import access
from ..services.activity import log_activity
from ..services.members import get_member_by_number

logger = logging.getLogger(__name__)

router = APIRouter()

login_rate_limit = limit_requests("login")


def _build_token_response(user: User) -> Token:
    role = Role.parse(user.role) or Role.MEMBER
    return Token(
        access_token=create_access_token(user.id, role),
        refresh_token=create_refresh_token(user.id),
        role=role,
    )


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/login", response_model=Token, dependencies=[Depends(login_rate_limit)])
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)) -> Token:
    user = authenticate_user(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Incorrect email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is awaiting approval")
    logger.info("User %s signed in", user.id)
    return _build_token_response(user)


@router.post("/refresh", response_model=Token)
def refresh_token(payload: TokenRefreshRequest, db: Session = Depends(get_db)) -> Token:
    user_id = read_subject(payload.refresh_token, REFRESH_TOKEN)
    user = db.get(User, user_id) if user_id is not None else None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    return _build_token_response(user)


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)) -> User:
    return current_user


@router.get("/me/navigation", response_model=NavigationRead)
def read_navigation(current_user: User = Depends(get_current_user)) -> NavigationRead:
    role = Role.parse(current_user.role) or Role.MEMBER
    return NavigationRead(
        role=role,
        role_label=role.label,
        tabs=access.visible_tabs(role),
        functions=[SystemFunctionRead.model_validate(function) for function in access.get_accessible_functions(role)],
        member_actions=access.member_actions(role),
    )


@router.put("/me", response_model=UserRead)
def update_me(
    payload: UserSelfUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> User:
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(current_user, field, value)
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    log_activity(
        db,
        current_user,
        "profile_updated",
        f"{current_user.display_name} updated their profile",
        target_entity_type="User",
        target_entity_id=str(current_user.id),
        details=changes,
    )
    return current_user


@router.put("/me/profile-picture", response_model=UserRead)
def update_own_profile_picture(
    payload: ProfilePictureUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_function(FN_OWN_PROFILE_PICTURE)),
) -> User:
    current_user.profile_picture = payload.profile_picture
    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    log_activity(
        db,
        current_user,
        "profile_updated",
        f"{current_user.display_name} updated their profile picture",
        target_entity_type="User",
        target_entity_id=str(current_user.id),
    )
    return current_user


@router.get("/users", response_model=List[UserRead])
def list_users(
    db: Session = Depends(get_db),
    _: User = Depends(require_roles(Role.ADMIN)),
) -> List[User]:
    return db.query(User).order_by(User.email.asc()).all()


@router.post("/register", response_model=UserRead)
def register_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_roles(Role.ADMIN)),
) -> User:
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(
        email=email,
        full_name=payload.full_name,
        hashed_password=get_password_hash(payload.password),
        role=payload.role.value,
        member_number=payload.member_number,
        is_active=payload.is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    log_activity(
        db,
        actor,
        "user_updated",
        f"Created {user.role} account for {user.email}",
        target_entity_type="User",
        target_entity_id=str(user.id),
        details=payload.model_dump(exclude={"password"}),
    )
    return user


@router.put("/users/{user_id}/approval", response_model=UserRead)
def set_user_approval(
    user_id: int,
    payload: UserApproval,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_APPROVE_ACCOUNTS)),
) -> User:
    user = _get_user_or_404(db, user_id)
    user.is_active = payload.is_active
    db.add(user)
    db.commit()
    db.refresh(user)
    verdict = "approved" if payload.is_active else "disapproved"
    log_activity(
        db,
        actor,
        "user_updated",
        f"Account {user.email} {verdict}",
        target_entity_type="User",
        target_entity_id=str(user.id),
        details={"is_active": user.is_active},
    )
    return user


@router.put("/users/{user_id}/member-link", response_model=UserRead)
def link_user_to_member(
    user_id: int,
    payload: MemberLink,
    db: Session = Depends(get_db),
    actor: User = Depends(require_function(FN_LINK_MEMBER)),
) -> User:
    user = _get_user_or_404(db, user_id)
    if payload.member_number and not get_member_by_number(db, payload.member_number):
        raise HTTPException(status_code=404, detail="Member not found")
    user.member_number = payload.member_number
    db.add(user)
    db.commit()
    db.refresh(user)
    log_activity(
        db,
        actor,
        "user_updated",
        f"Account {user.email} linked to {payload.member_number or 'no member'}",
        target_entity_type="User",
        target_entity_id=str(user.id),
        details={"member_number": payload.member_number},
    )
    return user

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..config import settings
from ..constants import Role
from ..models.models import User
from ..services.access import has_access

logger = logging.getLogger(__name__)

ACCESS_TOKEN = "access"
REFRESH_TOKEN = "refresh"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode(claims: Dict[str, Any], lifetime_minutes: int) -> str:
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=lifetime_minutes)
    return jwt.encode({**claims, "exp": expires_at}, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, role: Optional[Role] = None) -> str:
    claims: Dict[str, Any] = {"sub": str(user_id), "type": ACCESS_TOKEN}
    if role is not None:
        claims["role"] = role.value
    return _encode(claims, settings.access_token_expire_minutes)


def create_refresh_token(user_id: int) -> str:
    return _encode({"sub": str(user_id), "type": REFRESH_TOKEN}, settings.refresh_token_expire_minutes)


def decode_token(token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def read_subject(token: str, expected_type: str) -> Optional[int]:
    """User id carried by ``token`` when it is valid and of ``expected_type``; otherwise None."""
    try:
        claims = decode_token(token)
    except JWTError:
        return None
    subject = claims.get("sub")
    if claims.get("type") != expected_type or subject is None or not str(subject).isdigit():
        return None
    return int(subject)


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.hashed_password):
        logger.info("Failed login attempt for %s", email)
        return None
    return user


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    user_id = read_subject(token, ACCESS_TOKEN)
    user = db.get(User, user_id) if user_id is not None else None
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is awaiting approval")
    return user


def require_function(function_id: int):
    """Dependency that only lets through users whose role may use ``function_id``."""

    def function_checker(user: User = Depends(get_current_user)) -> User:
        if has_access(user.role, function_id):
            return user
        raise HTTPException(status_code=403, detail="Operation not permitted for your role")

    return function_checker


def require_roles(*allowed_roles: Role):
    allowed = set(allowed_roles)

    def role_checker(user: User = Depends(get_current_user)) -> User:
        if Role.parse(user.role) in allowed:
            return user
        raise HTTPException(status_code=403, detail="Operation not permitted for your role")

    return role_checker

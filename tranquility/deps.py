import logging
from datetime import datetime, timedelta, timezone
from typing import Generator

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from . import models, schemas
from .config import settings
from .database import SessionLocal
from .exceptions import AuthError

logger = logging.getLogger(__name__)


# ----- DB -----
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# ----- Auth / JWT -----
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error is off so the login cookie can stand in for the header
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user: models.User) -> str:
    return create_access_token({"sub": str(user.id), "email": user.email, "role": user.role.value})


def decode_access_token(token: str) -> schemas.TokenData:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        subject = payload.get("sub")
        if subject is None:
            raise AuthError("Invalid or expired token")
        return schemas.TokenData(user_id=int(subject), email=payload.get("email"), role=payload.get("role"))
    except (JWTError, ValueError):
        raise AuthError("Invalid or expired token")


def get_user_by_email(db: Session, email: str) -> models.User | None:
    return db.query(models.User).filter(models.User.email == email).first()


def get_request_token(request: Request, bearer: str | None = Depends(oauth2_scheme)) -> str:
    token = bearer or request.cookies.get(settings.COOKIE_NAME)
    if not token:
        raise AuthError("Authentication token required")
    return token


def get_current_user(
    token: str = Depends(get_request_token),
    db: Session = Depends(get_db),
) -> models.User:
    token_data = decode_access_token(token)
    user = db.get(models.User, token_data.user_id)
    if user is None or user.is_deleted:
        logger.warning("Rejected token for unknown or deleted user id=%s", token_data.user_id)
        raise AuthError("Invalid or expired token")
    return user


def require_roles(*allowed_roles: models.Role):
    """
    Usage: current_user: models.User = Depends(require_roles(models.Role.ADMIN))
    """
    def role_checker(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role not in allowed_roles:
            raise AuthError("Not enough permissions", status_code=403)
        return current_user

    return role_checker


require_admin = require_roles(models.Role.ADMIN)
require_staff = require_roles(models.Role.STAFF, models.Role.ADMIN)


def is_staff(user: models.User) -> bool:
    return user.role in (models.Role.STAFF, models.Role.ADMIN)

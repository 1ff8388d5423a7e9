import logging
import secrets
import uuid
from datetime import timedelta

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from .. import models, schemas
from ..config import settings
from ..deps import (
    create_user_token,
    get_current_user,
    get_db,
    get_password_hash,
    get_user_by_email,
    verify_password,
)
from ..exceptions import AuthError, ConflictError, NotFoundError, ValidationError
from ..limiter import limiter
from ..models import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_auth_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )


@router.post("/signup", response_model=schemas.ApiResponse[schemas.AuthPayload], status_code=201)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def signup(
    request: Request,
    response: Response,
    signup_in: schemas.SignupRequest,
    db: Session = Depends(get_db),
):
    """
    Register a new guest account.

    New accounts always get the GUEST role; staff and admin accounts are
    created from the admin area. The response carries a token so the guest
    is signed in straight away.

    Raises
    ------
    ConflictError
        - 409 if the email is already registered.
    """
    if get_user_by_email(db, signup_in.email):
        raise ConflictError("User already exists")

    user = models.User(
        first_name=signup_in.first_name,
        last_name=signup_in.last_name,
        email=signup_in.email,
        phone=signup_in.phone,
        password_hash=get_password_hash(signup_in.password),
        role=models.Role.GUEST,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered guest user id=%s", user.id)

    token = create_user_token(user)
    _set_auth_cookie(response, token)
    return {"message": "User signed up successfully", "data": {"user": user, "token": token}}


@router.post("/login", response_model=schemas.ApiResponse[schemas.AuthPayload])
@limiter.limit(settings.AUTH_RATE_LIMIT)
def login(
    request: Request,
    response: Response,
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    """
    Authenticate with email and password.

    Returns a JWT and also stores it in an HTTP-only cookie. Admins are sent
    to the dashboard, everyone else to the home page.

    Raises
    ------
    NotFoundError
        - 404 if no active account uses this email.
    AuthError
        - 401 if the password is wrong.
    """
    user = get_user_by_email(db, credentials.email)
    if not user or user.is_deleted:
        raise NotFoundError("User does not exist")
    if not verify_password(credentials.password, user.password_hash):
        logger.warning("Failed login for user id=%s", user.id)
        raise AuthError("Invalid credentials")

    token = create_user_token(user)
    _set_auth_cookie(response, token)
    redirect_url = "/admin" if user.role == models.Role.ADMIN else "/"
    return {
        "message": "Login successful",
        "data": {"user": user, "token": token, "redirect_url": redirect_url},
    }


@router.post("/logout", response_model=schemas.MessageResponse)
def logout(response: Response):
    response.delete_cookie(settings.COOKIE_NAME, path="/")
    return {"message": "Logged out successfully"}


@router.get("/validate", response_model=schemas.ApiResponse[schemas.UserOut])
def validate_session(current_user: models.User = Depends(get_current_user)):
    """Confirm that the caller's token is still valid."""
    return {"message": "Session is still active", "data": current_user}


@router.patch("/change-password", response_model=schemas.MessageResponse)
def change_password(
    payload: schemas.ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.password_hash):
        raise ValidationError("Current password is incorrect")
    if payload.current_password == payload.new_password:
        raise ValidationError("New password must be different from the current password")

    current_user.password_hash = get_password_hash(payload.new_password)
    db.commit()
    logger.info("Password changed for user id=%s", current_user.id)
    return {"message": "Password updated successfully"}


@router.post("/forgot-password", response_model=schemas.ApiResponse[schemas.ForgotPasswordOut])
@limiter.limit(settings.AUTH_RATE_LIMIT)
def forgot_password(
    request: Request,
    payload: schemas.ForgotPasswordRequest,
    db: Session = Depends(get_db),
):
    """
    Issue a six-digit reset code bound to a fresh session id.

    The code itself is delivered out of band; only the session id is
    returned to the caller.
    """
    user = get_user_by_email(db, payload.email)
    if not user or user.is_deleted:
        raise NotFoundError("User does not exist")

    reset = models.PasswordResetCode(
        user_id=user.id,
        session_id=str(uuid.uuid4()),
        code=f"{secrets.randbelow(10 ** 6):06d}",
        expires_at=utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
    )
    db.add(reset)
    db.commit()
    logger.info("Issued password reset code for user id=%s", user.id)
    return {"message": "OTP code sent successfully", "data": {"session_id": reset.session_id}}


@router.post("/reset-password/{session_id}", response_model=schemas.MessageResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
def reset_password(
    request: Request,
    session_id: str,
    payload: schemas.ResetPasswordRequest,
    db: Session = Depends(get_db),
):
    """
    Set a new password with the code issued by ``/auth/forgot-password``.

    A code works once. After ``PASSWORD_RESET_MAX_ATTEMPTS`` wrong guesses
    it is burnt and a new one has to be requested.
    """
    reset = (
        db.query(models.PasswordResetCode)
        .filter(
            models.PasswordResetCode.session_id == session_id,
            models.PasswordResetCode.used.is_(False),
        )
        .first()
    )
    if not reset:
        raise NotFoundError("The resource does not exist")
    if reset.expires_at < utcnow():
        raise ValidationError("OTP has expired")
    if not secrets.compare_digest(reset.code, payload.otp):
        reset.failed_attempts += 1
        if reset.failed_attempts >= settings.PASSWORD_RESET_MAX_ATTEMPTS:
            reset.used = True
            logger.warning("Reset code for user id=%s burnt after failed attempts", reset.user_id)
        db.commit()
        raise ValidationError("OTP does not match")

    user = db.get(models.User, reset.user_id)
    if not user or user.is_deleted:
        raise NotFoundError("User does not exist")
    user.password_hash = get_password_hash(payload.new_password)
    reset.used = True
    db.commit()
    logger.info("Password reset for user id=%s", user.id)
    return {"message": "Password updated successfully"}

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..deps import get_current_user, get_db, get_password_hash, get_user_by_email, require_admin
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..pagination import PageParams, paginate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])
admin_router = APIRouter(prefix="/admin/users", tags=["admin"])

BACK_OFFICE_ROLES = (models.Role.STAFF, models.Role.ADMIN)


def _ensure_email_free(db: Session, email: str, user_id: int | None = None) -> None:
    existing = get_user_by_email(db, email)
    if existing and existing.id != user_id:
        raise ConflictError("Email is already in use")


def _apply_profile(db: Session, user: models.User, data: dict) -> None:
    if data.get("email") is not None:
        _ensure_email_free(db, data["email"], user.id)
    for field, value in data.items():
        if value is not None or field == "phone":
            setattr(user, field, value)


# ----- Own profile -----
@router.get("/me", response_model=schemas.ApiResponse[schemas.UserOut])
def read_current_user(current_user: models.User = Depends(get_current_user)):
    """
    Get the currently authenticated user.

    Returns the profile information of the user associated with the provided
    token.
    """
    return {"message": "User retrieved successfully", "data": current_user}


@router.patch("/me", response_model=schemas.ApiResponse[schemas.UserOut])
def update_current_user(
    profile: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Update the profile of the current user.

    Name, email and phone can be changed here; roles cannot.

    Raises
    ------
    ConflictError
        - 409 if the new email belongs to another account.
    """
    _apply_profile(db, current_user, profile.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(current_user)
    return {"message": "Profile updated successfully", "data": current_user}


@router.get("/me/bookings", response_model=schemas.ApiResponse[schemas.BookingPage])
def read_booking_history(
    status: Optional[models.BookingStatus] = None,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """The caller's own bookings, newest first."""
    query = db.query(models.Booking).filter(models.Booking.user_id == current_user.id)
    if status is not None:
        query = query.filter(models.Booking.status == status)
    query = query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    bookings, pagination = paginate(query, page)
    return {
        "message": "Booking history retrieved successfully",
        "data": {"bookings": bookings, "pagination": pagination},
    }


# ----- Admin user management -----
@admin_router.get("/", response_model=schemas.ApiResponse[schemas.UserPage])
def list_users(
    search: Optional[str] = None,
    role: Optional[models.Role] = None,
    include_deleted: bool = False,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    List registered users. *(Admin-only)*

    ``search`` matches first name, last name or email; ``role`` narrows
    to one role. Soft-deleted accounts are hidden unless
    ``include_deleted`` is set.
    """
    query = db.query(models.User)
    if not include_deleted:
        query = query.filter(models.User.is_deleted.is_(False))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            or_(
                models.User.first_name.ilike(pattern),
                models.User.last_name.ilike(pattern),
                models.User.email.ilike(pattern),
            )
        )
    if role is not None:
        query = query.filter(models.User.role == role)
    query = query.order_by(models.User.created_at.desc(), models.User.id.desc())
    users, pagination = paginate(query, page)
    return {"message": "Users retrieved successfully", "data": {"users": users, "pagination": pagination}}


@admin_router.post("/", response_model=schemas.ApiResponse[schemas.UserOut], status_code=201)
def create_user(
    user_in: schemas.AdminUserCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    """
    Create a staff or admin account. *(Admin-only)*

    Guests register themselves through ``/auth/signup``.
    """
    if user_in.role not in BACK_OFFICE_ROLES:
        raise ValidationError("Role must be STAFF or ADMIN")
    _ensure_email_free(db, user_in.email)

    user = models.User(
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        email=user_in.email,
        phone=user_in.phone,
        role=user_in.role,
        password_hash=get_password_hash(user_in.password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Created %s account id=%s", user.role.value, user.id)
    return {"message": "User created successfully", "data": user}


@admin_router.get("/{user_id}", response_model=schemas.ApiResponse[schemas.UserOut])
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(require_admin),
):
    user = db.get(models.User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return {"message": "User retrieved successfully", "data": user}


@admin_router.patch("/{user_id}", response_model=schemas.ApiResponse[schemas.UserOut])
def update_user(
    user_id: int,
    user_update: schemas.AdminUserUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    """
    Update a staff or admin account. *(Admin-only)*

    Guest profiles belong to the guests themselves and are rejected here,
    as is any attempt to hand out the GUEST role.

    Raises
    ------
    NotFoundError
        - 404 if the user does not exist.
    ValidationError
        - 400 for guest accounts or a non back-office role,
          or for deleting your own account.
    ConflictError
        - 409 if the email belongs to another account.
    """
    user = db.get(models.User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.role == models.Role.GUEST:
        raise ValidationError("Cannot update guest users through this endpoint")

    data = user_update.model_dump(exclude_unset=True)
    role = data.pop("role", None)
    is_deleted = data.pop("is_deleted", None)
    if is_deleted and user.id == current_user.id:
        raise ValidationError("You cannot delete your own account")
    if role is not None:
        if role not in BACK_OFFICE_ROLES:
            raise ValidationError("Role must be STAFF or ADMIN")
        user.role = role
    if is_deleted is not None:
        user.is_deleted = is_deleted
    _apply_profile(db, user, data)

    db.commit()
    db.refresh(user)
    return {"message": "User updated successfully", "data": user}


@admin_router.delete("/{user_id}", response_model=schemas.MessageResponse)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_admin),
):
    """
    Soft-delete a user account. *(Admin-only)*

    The account can no longer sign in but its bookings stay on record.
    """
    user = db.get(models.User, user_id)
    if not user:
        raise NotFoundError("User not found")
    if user.id == current_user.id:
        raise ValidationError("You cannot delete your own account")
    if user.is_deleted:
        raise ConflictError("User is already deleted")

    user.is_deleted = True
    db.commit()
    logger.info("Soft-deleted user id=%s", user.id)
    return {"message": "User deleted successfully"}

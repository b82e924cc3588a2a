"""
User management within the caller's effective client.

client_admin manages their own organization; admin manages whichever client
they are acting as (see ``X-Client-Context``).
"""

import logging
import secrets

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import RequestContext, hash_password, require_user_manager
from ..database import get_db
from ..errors import FieldError, NotFound, ValidationFailed, raise_if_errors
from ..responses import Page, ok
from ..validators import is_valid_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])

ALL_ROLES = [r.value for r in models.Role]


def _assignable_roles(ctx: RequestContext) -> list:
    return ALL_ROLES if ctx.is_admin else list(models.CLIENT_SIDE_ROLES)


def _user_out(user: models.User) -> dict:
    return schemas.UserOut.model_validate(user).model_dump(mode="json")


def _load_user(db: Session, user_id: int, ctx: RequestContext) -> models.User:
    user = db.query(models.User).filter(
        models.User.id == user_id,
        models.User.client_id == ctx.client_id,
    ).first()
    if not user:
        raise NotFound("User not found")
    return user


def _email_taken(db: Session, client_id: int, email: str, exclude_id: int = None) -> bool:
    query = db.query(models.User).filter(models.User.client_id == client_id, models.User.email == email)
    if exclude_id is not None:
        query = query.filter(models.User.id != exclude_id)
    return query.first() is not None


@router.get("")
def list_users(
    page: Page = Depends(),
    ctx: RequestContext = Depends(require_user_manager),
    db: Session = Depends(get_db),
):
    query = db.query(models.User).filter(models.User.client_id == ctx.client_id).order_by(models.User.full_name)
    rows, pagination = page.apply(query)
    return ok([_user_out(u) for u in rows], pagination=pagination)


@router.get("/{user_id}")
def get_user(user_id: int, ctx: RequestContext = Depends(require_user_manager), db: Session = Depends(get_db)):
    return ok(_user_out(_load_user(db, user_id, ctx)))


@router.post("", status_code=201)
def create_user(
    body: schemas.UserCreate,
    ctx: RequestContext = Depends(require_user_manager),
    db: Session = Depends(get_db),
):
    errors = []
    if not (body.full_name or "").strip():
        errors.append(FieldError("full_name", "Full name is required"))
    if not (body.email or "").strip():
        errors.append(FieldError("email", "Email is required"))
    elif not is_valid_email(body.email.strip()):
        errors.append(FieldError("email", "Please provide a valid email address"))
    if not body.role:
        errors.append(FieldError("role", "Role is required"))
    elif body.role not in _assignable_roles(ctx):
        errors.append(FieldError("role", "You can only assign Client User or Client Admin roles"))
    raise_if_errors(errors)

    email = body.email.strip().lower()
    if _email_taken(db, ctx.client_id, email):
        raise ValidationFailed(
            "A user with this email already exists in your organization",
            errors=[FieldError("email", "Email already in use")],
        )

    # No mail delivery here; a generated password is returned once to the creator
    temporary_password = None
    password = body.password
    if not password:
        temporary_password = password = secrets.token_urlsafe(12)

    user = models.User(
        full_name=body.full_name.strip(),
        email=email,
        role=body.role,
        phone_number=body.phone_number or None,
        password_hash=hash_password(password),
        client_id=ctx.client_id,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} ({user.role}) created in client {ctx.client_id} by user {ctx.user.id}")

    data = _user_out(user)
    if temporary_password:
        data["temporary_password"] = temporary_password
    return ok(data, message="User created successfully")


@router.patch("/{user_id}")
def update_user(
    user_id: int,
    body: schemas.UserUpdate,
    ctx: RequestContext = Depends(require_user_manager),
    db: Session = Depends(get_db),
):
    fields = body.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailed("At least one field must be provided for update")

    user = _load_user(db, user_id, ctx)
    if "role" in fields and fields["role"] != user.role:
        if user.id == ctx.user.id:
            raise ValidationFailed("You cannot change your own role", errors=[FieldError("role", "Cannot change own role")])
        if fields["role"] not in _assignable_roles(ctx):
            raise ValidationFailed(
                "You can only assign Client User or Client Admin roles",
                errors=[FieldError("role", "Role not assignable")],
            )

    if "email" in fields:
        email = (fields["email"] or "").strip().lower()
        if not is_valid_email(email):
            raise ValidationFailed("Please provide a valid email address", errors=[FieldError("email", "Invalid email")])
        if _email_taken(db, ctx.client_id, email, exclude_id=user.id):
            raise ValidationFailed(
                "A user with this email already exists in your organization",
                errors=[FieldError("email", "Email already in use")],
            )
        fields["email"] = email

    password = fields.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for field, value in fields.items():
        if value is None and field in ("full_name", "role", "is_active"):
            continue
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return ok(_user_out(user), message="User updated successfully")


@router.delete("/{user_id}")
def delete_user(user_id: int, ctx: RequestContext = Depends(require_user_manager), db: Session = Depends(get_db)):
    """Deactivate a user. Rows stay for the audit trail."""
    user = _load_user(db, user_id, ctx)
    if user.id == ctx.user.id:
        raise ValidationFailed("You cannot delete your own account")

    user.is_active = False
    db.commit()
    logger.info(f"User {user.id} deactivated by user {ctx.user.id}")
    return ok({"id": user.id}, message="User deleted successfully")

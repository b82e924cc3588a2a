"""
Auth endpoints: login, me, logout.

Tokens are stateless bearer JWTs; logout exists so the caller has a single
place to tear its session down, the server keeps nothing to revoke.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import (
    RequestContext,
    create_access_token,
    ensure_account_active,
    get_request_context,
    verify_password,
)
from ..database import get_db
from ..responses import ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _user_to_response(user: models.User) -> dict:
    """Never expose password_hash."""
    data = schemas.UserOut.model_validate(user).model_dump(mode="json")
    data["client"] = {
        "id": user.client.id,
        "name": user.client.name,
        "code": user.client.code,
    } if user.client else None
    return data


@router.post("/login")
def login(request: schemas.LoginRequest, db: Session = Depends(get_db)):
    """Authenticate with email + password. Returns an access token and the user."""
    users = db.query(models.User).filter(models.User.email == request.email.strip().lower()).all()
    user = next((u for u in users if verify_password(request.password, u.password_hash)), None)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    ensure_account_active(user)
    logger.info(f"User {user.id} logged in")
    return ok({
        "token": create_access_token(user),
        "token_type": "bearer",
        "user": _user_to_response(user),
    })


@router.get("/me")
def me(ctx: RequestContext = Depends(get_request_context)):
    data = _user_to_response(ctx.user)
    data["effective_client_id"] = ctx.client_id
    return ok(data)


@router.post("/logout")
def logout(ctx: RequestContext = Depends(get_request_context)):
    logger.info(f"User {ctx.user.id} logged out")
    return ok(message="Logged out")

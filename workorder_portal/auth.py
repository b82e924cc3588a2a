"""
JWT token creation/validation, password hashing and the per-request tenant context.

Libraries: python-jose[cryptography] for JWT, passlib[bcrypt] for passwords.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .errors import Forbidden, NotFound
from . import models

logger = logging.getLogger(__name__)

# --- Password hashing ---

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# --- JWT tokens ---

security = HTTPBearer(auto_error=False)


def _get_jwt_secret() -> str:
    """Get JWT secret, failing loudly if not configured."""
    secret = settings.JWT_SECRET
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT_SECRET not configured",
        )
    return secret


def create_access_token(user: models.User) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.JWT_ACCESS_EXPIRE_MINUTES)
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "client_id": user.client_id,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Raises HTTPException on failure."""
    try:
        return jwt.decode(token, _get_jwt_secret(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )


def ensure_account_active(user: models.User):
    if not user.is_active:
        raise Forbidden("User account is inactive")
    if user.client is None or user.client.status != models.ClientStatus.ACTIVE.value:
        raise Forbidden("Your organization account is inactive")


# --- FastAPI dependencies ---

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> models.User:
    """Extracts and validates the bearer token, returns the active User."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    payload = decode_token(credentials.credentials)
    if payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )

    user = db.query(models.User).filter(models.User.id == int(user_id)).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    ensure_account_active(user)
    return user


@dataclass
class RequestContext:
    """Who is calling and which client's data they are acting on."""
    user: models.User
    client_id: int
    acting_as_other_client: bool = False

    @property
    def role(self) -> str:
        return self.user.role

    @property
    def is_staff_side(self) -> bool:
        return self.user.role in models.STAFF_SIDE_ROLES

    @property
    def is_admin(self) -> bool:
        return self.user.role == models.Role.ADMIN.value

    def can_see_client(self, client_id: int) -> bool:
        return self.is_staff_side or client_id == self.client_id


def get_request_context(
    x_client_context: Optional[str] = Header(default=None),
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RequestContext:
    """
    Resolve the effective client for this request.

    Admins may switch tenant with ``X-Client-Context: <clientId>``; the header
    is ignored for every other role.
    """
    if x_client_context and user.role == models.Role.ADMIN.value:
        try:
            target_id = int(x_client_context)
        except ValueError:
            raise NotFound("Client context not found")
        target = db.query(models.Client).filter(models.Client.id == target_id).first()
        if not target:
            raise NotFound("Client context not found")
        if target.id != user.client_id:
            logger.info(f"Admin {user.id} acting as client {target.id}")
        return RequestContext(user=user, client_id=target.id, acting_as_other_client=target.id != user.client_id)

    return RequestContext(user=user, client_id=user.client_id)


def require_roles(*roles: str):
    """Dependency factory: 403 unless the caller holds one of ``roles``."""
    def _check(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        if ctx.role not in roles:
            raise Forbidden(
                "You do not have permission to perform this action",
                details={"required_roles": list(roles)},
            )
        return ctx
    return _check


require_admin = require_roles(models.Role.ADMIN.value)
require_staff = require_roles(*models.STAFF_SIDE_ROLES)
require_user_manager = require_roles(models.Role.ADMIN.value, models.Role.CLIENT_ADMIN.value)

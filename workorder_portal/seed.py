"""First-run data: the protected home client and a bootstrap admin account."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import models
from .auth import hash_password
from .config import settings

logger = logging.getLogger(__name__)


def ensure_protected_client(db: Session) -> models.Client:
    client = db.query(models.Client).filter(models.Client.code == settings.PROTECTED_CLIENT_CODE).first()
    if client:
        return client
    client = models.Client(
        name=settings.PROTECTED_CLIENT_NAME,
        code=settings.PROTECTED_CLIENT_CODE,
        status=models.ClientStatus.ACTIVE.value,
        protected=True,
        settings={},
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info(f"Created protected client {client.code}")
    return client


def seed_bootstrap_admin(db: Session) -> Optional[models.User]:
    """Idempotent. Returns the admin, or None when no bootstrap admin is configured."""
    client = ensure_protected_client(db)
    email = settings.BOOTSTRAP_ADMIN_EMAIL.strip().lower()
    if not email:
        return None
    if not settings.BOOTSTRAP_ADMIN_PASSWORD:
        logger.warning("BOOTSTRAP_ADMIN_EMAIL is set without BOOTSTRAP_ADMIN_PASSWORD; skipping admin seed")
        return None

    admin = db.query(models.User).filter(
        models.User.client_id == client.id, models.User.email == email,
    ).first()
    if admin:
        return admin

    admin = models.User(
        email=email,
        password_hash=hash_password(settings.BOOTSTRAP_ADMIN_PASSWORD),
        role=models.Role.ADMIN.value,
        full_name="Administrator",
        client_id=client.id,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info(f"Seeded bootstrap admin {admin.email}")
    return admin

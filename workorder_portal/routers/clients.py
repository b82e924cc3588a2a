"""
Client (tenant organization) administration. Admin only.

Clients are never hard-deleted: DELETE archives, and only once nothing hangs
off the client any more.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import RequestContext, require_admin
from ..config import settings
from ..database import get_db
from ..errors import Conflict, FieldError, Forbidden, NotFound, ValidationFailed, raise_if_errors
from ..responses import Page, ok
from ..validators import validate_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["clients"])

CLIENT_STATUSES = [s.value for s in models.ClientStatus]


def _counts(db: Session, client_id: int) -> dict:
    return {
        "user_count": db.query(models.User).filter(models.User.client_id == client_id).count(),
        "work_order_count": db.query(models.WorkOrder).filter(models.WorkOrder.client_id == client_id).count(),
    }


def _client_to_response(db: Session, client: models.Client) -> dict:
    data = schemas.ClientOut.model_validate(client).model_dump(mode="json")
    data.update(_counts(db, client.id))
    return data


def _load_client(db: Session, client_id: int) -> models.Client:
    client = db.query(models.Client).filter(models.Client.id == client_id).first()
    if not client:
        raise NotFound("Client not found")
    return client


def _check_status(value: Optional[str]):
    if value is not None and value not in CLIENT_STATUSES:
        raise ValidationFailed(
            "Validation error",
            errors=[FieldError("status", "Status must be active, inactive, or archived")],
        )


@router.get("")
def list_clients(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: Page = Depends(),
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(models.Client)
    if status in CLIENT_STATUSES:
        query = query.filter(models.Client.status == status)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(models.Client.name).like(pattern),
            func.lower(models.Client.code).like(pattern),
        ))
    rows, pagination = page.apply(query.order_by(models.Client.name.asc()))
    return ok([_client_to_response(db, c) for c in rows], pagination=pagination)


@router.get("/{client_id}")
def get_client(client_id: int, ctx: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(_client_to_response(db, _load_client(db, client_id)))


@router.post("", status_code=201)
def create_client(
    body: schemas.ClientCreate,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    fields = body.model_dump(exclude_unset=True)
    raise_if_errors(validate_client(fields, creating=True), "Validation error")
    _check_status(fields.get("status"))

    code = fields["code"].strip().upper()
    if db.query(models.Client).filter(models.Client.code == code).first():
        raise Conflict("Validation error", errors=[FieldError("code", "Code must be unique")])

    client = models.Client(
        name=fields["name"].strip(),
        code=code,
        status=fields.get("status") or models.ClientStatus.ACTIVE.value,
        protected=code == settings.PROTECTED_CLIENT_CODE,
        primary_contact_name=fields.get("primary_contact_name"),
        primary_contact_email=fields.get("primary_contact_email"),
        primary_contact_phone=fields.get("primary_contact_phone"),
        settings=fields.get("settings") or {},
    )
    db.add(client)
    db.commit()
    db.refresh(client)
    logger.info(f"Client {client.code} created by user {ctx.user.id}")
    return ok(_client_to_response(db, client), message="Client created successfully")


@router.put("/{client_id}")
def update_client(
    client_id: int,
    body: schemas.ClientUpdate,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    client = _load_client(db, client_id)
    fields = body.model_dump(exclude_unset=True)

    code = fields.pop("code", None)
    if code is not None and code.strip().upper() != client.code:
        raise ValidationFailed("Validation error", errors=[FieldError("code", "Code cannot be modified")])
    _check_status(fields.get("status"))
    raise_if_errors(validate_client(fields, creating=False), "Validation error")

    for field, value in fields.items():
        if value is None and field in ("name", "status"):
            continue
        if field == "name":
            value = value.strip()
        setattr(client, field, value)
    db.commit()
    db.refresh(client)
    return ok(_client_to_response(db, client), message="Client updated successfully")


@router.delete("/{client_id}")
def delete_client(
    client_id: int,
    confirm: bool = False,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Archive a client. Requires ``?confirm=true``."""
    if not confirm:
        raise ValidationFailed("Deletion requires confirmation. Add ?confirm=true to the request.")

    client = _load_client(db, client_id)
    if client.protected:
        raise Forbidden(f"Cannot delete the {client.name} client")

    counts = _counts(db, client.id)
    if counts["user_count"] or counts["work_order_count"]:
        raise ValidationFailed("Cannot delete client with active users or work orders", details=counts)

    client.status = models.ClientStatus.ARCHIVED.value
    db.commit()
    logger.info(f"Client {client.code} archived by user {ctx.user.id}")
    return ok({"id": client.id, "status": client.status}, message="Client archived successfully")


@router.get("/{client_id}/stats")
def client_stats(client_id: int, ctx: RequestContext = Depends(require_admin), db: Session = Depends(get_db)):
    client = _load_client(db, client_id)
    work_orders_by_status = dict(
        db.query(models.WorkOrder.status, func.count(models.WorkOrder.id))
        .filter(models.WorkOrder.client_id == client.id)
        .group_by(models.WorkOrder.status).all()
    )
    users_by_role = dict(
        db.query(models.User.role, func.count(models.User.id))
        .filter(models.User.client_id == client.id)
        .group_by(models.User.role).all()
    )
    quote_count = db.query(models.Quote).filter(models.Quote.client_id == client.id).count()
    return ok({
        "client": {"id": client.id, "name": client.name, "code": client.code, "status": client.status},
        **_counts(db, client.id),
        "quote_count": quote_count,
        "work_orders_by_status": work_orders_by_status,
        "users_by_role": users_by_role,
    })

"""
Work order endpoints: manual creation, listing, status changes, notes and the urgent flag.

Manual creation always stamps the configured supplier, whatever the request
carries. Conversion from a quote lives in ``conversion.py``.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import models, notifications, schemas
from ..auth import RequestContext, get_request_context
from ..config import settings
from ..database import get_db
from ..errors import Conflict, FieldError, Forbidden, NotFound, ValidationFailed, raise_if_errors
from ..responses import Page, ok
from ..validators import missing_fields_message, validate_work_order

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/work-orders", tags=["work-orders"])

FINAL_STATUSES = (models.WorkOrderStatus.COMPLETED.value, models.WorkOrderStatus.CANCELLED.value)


def _load_work_order(db: Session, work_order_id: int, ctx: RequestContext) -> models.WorkOrder:
    work_order = db.query(models.WorkOrder).filter(models.WorkOrder.id == work_order_id).first()
    if not work_order:
        raise NotFound("Work order not found")
    if not ctx.can_see_client(work_order.client_id):
        raise Forbidden("You do not have access to this work order")
    return work_order


def _scoped(db: Session, ctx: RequestContext):
    query = db.query(models.WorkOrder)
    if not ctx.is_staff_side or ctx.acting_as_other_client:
        query = query.filter(models.WorkOrder.client_id == ctx.client_id)
    return query


def _out(work_order: models.WorkOrder) -> dict:
    return schemas.WorkOrderOut.model_validate(work_order).model_dump(mode="json")


@router.get("/summary")
def work_orders_summary(ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    base = _scoped(db, ctx)
    counts = dict(
        base.with_entities(models.WorkOrder.status, func.count(models.WorkOrder.id))
        .group_by(models.WorkOrder.status).all()
    )
    return ok({
        "pending": counts.get(models.WorkOrderStatus.PENDING.value, 0),
        "in_progress": counts.get(models.WorkOrderStatus.IN_PROGRESS.value, 0),
        "completed": counts.get(models.WorkOrderStatus.COMPLETED.value, 0),
        "cancelled": counts.get(models.WorkOrderStatus.CANCELLED.value, 0),
        "urgent": base.filter(
            models.WorkOrder.is_urgent.is_(True),
            models.WorkOrder.status.notin_(FINAL_STATUSES),
        ).count(),
        "total": sum(counts.values()),
    })


@router.get("")
def list_work_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    sort: Optional[str] = None,
    page: Page = Depends(),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    query = _scoped(db, ctx)
    if status:
        query = query.filter(models.WorkOrder.status == status)
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(models.WorkOrder.job_no).like(pattern),
            func.lower(models.WorkOrder.property_name).like(pattern),
            func.lower(models.WorkOrder.description).like(pattern),
        ))
    if sort == "latest":
        query = query.order_by(models.WorkOrder.created_at.desc(), models.WorkOrder.id.desc())
    else:
        query = query.order_by(models.WorkOrder.date.desc(), models.WorkOrder.id.desc())

    rows, pagination = page.apply(query)
    return ok([_out(wo) for wo in rows], pagination=pagination)


@router.post("", status_code=201)
def create_work_order(
    body: schemas.WorkOrderCreate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    fields = body.model_dump()
    errors = validate_work_order(fields)
    raise_if_errors(errors, missing_fields_message(errors) if errors else None)

    job_no = fields["job_no"].strip()
    if db.query(models.WorkOrder).filter(models.WorkOrder.job_no == job_no).first():
        raise Conflict("A work order with this job number already exists.", details={"job_no": job_no})

    user = ctx.user
    work_order = models.WorkOrder(
        job_no=job_no,
        date=fields["date"] or datetime.utcnow().date(),
        status=models.WorkOrderStatus.PENDING.value,
        work_order_type="manual",
        # Supplier is fixed; request values are ignored
        supplier_name=settings.DEFAULT_SUPPLIER_NAME,
        supplier_phone=settings.DEFAULT_SUPPLIER_PHONE,
        supplier_email=settings.DEFAULT_SUPPLIER_EMAIL,
        property_name=fields["property_name"].strip(),
        property_address=fields["property_address"].strip(),
        property_phone=fields["property_phone"].strip(),
        description=fields["description"].strip(),
        po_number=fields["po_number"],
        authorized_by=fields["authorized_by"] or user.full_name,
        authorized_contact=fields["authorized_contact"] or user.phone_number,
        authorized_email=fields["authorized_email"] or user.email,
        is_urgent=fields["is_urgent"],
        created_by=user.id,
        client_id=ctx.client_id,
    )
    db.add(work_order)
    db.commit()
    db.refresh(work_order)
    logger.info(f"Work order {work_order.job_no} created by user {user.id}")

    notifications.work_order_created(db, work_order, user)
    return ok(_out(work_order), message="Work order created successfully!")


@router.get("/{work_order_id}")
def get_work_order(work_order_id: int, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    work_order = _load_work_order(db, work_order_id, ctx)
    data = schemas.WorkOrderDetail.model_validate(work_order).model_dump(mode="json")
    data["client_name"] = work_order.client.name if work_order.client else None
    return ok(data)


@router.patch("/{work_order_id}/status")
def update_status(
    work_order_id: int,
    body: schemas.WorkOrderStatusUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    allowed = [s.value for s in models.WorkOrderStatus]
    if body.status not in allowed:
        raise ValidationFailed(
            f"Invalid status. Status must be one of: {', '.join(allowed)}.",
            errors=[FieldError("status", "Invalid status")],
        )

    work_order = _load_work_order(db, work_order_id, ctx)
    cancelling = body.status == models.WorkOrderStatus.CANCELLED.value
    notes = (body.notes or "").strip()

    if ctx.role in models.CLIENT_SIDE_ROLES and not cancelling:
        raise Forbidden("Clients can only cancel work orders")
    if ctx.role == models.Role.STAFF.value and cancelling:
        raise Forbidden("Staff cannot cancel work orders")
    if work_order.status in FINAL_STATUSES:
        raise Conflict(
            f"Work order is {work_order.status}; its status can no longer change.",
            details={"status": work_order.status},
        )
    if cancelling and not notes:
        raise ValidationFailed(
            "A reason is required to cancel a work order",
            errors=[FieldError("notes", "Cancellation reason is required")],
        )

    previous = work_order.status
    if previous == body.status and not notes:
        return ok({"id": work_order.id, "status": work_order.status}, message="No changes were made to the work order.")

    work_order.status = body.status
    db.add(models.StatusUpdate(
        work_order_id=work_order.id,
        previous_status=previous,
        new_status=body.status,
        notes=notes or None,
        updated_by=ctx.user.id,
    ))
    db.commit()
    db.refresh(work_order)
    logger.info(f"Work order {work_order.job_no} {previous} -> {work_order.status} by user {ctx.user.id}")

    notifications.work_order_status_changed(db, work_order, previous, ctx.user)
    return ok(_out(work_order), message="Work order status updated successfully!")


@router.patch("/{work_order_id}/urgent")
def set_urgent(
    work_order_id: int,
    body: schemas.UrgentUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    work_order = _load_work_order(db, work_order_id, ctx)
    work_order.is_urgent = body.is_urgent
    db.commit()
    db.refresh(work_order)
    return ok({"id": work_order.id, "is_urgent": work_order.is_urgent})


@router.post("/{work_order_id}/notes", status_code=201)
def add_note(
    work_order_id: int,
    body: schemas.NoteCreate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    if not (body.note or "").strip():
        raise ValidationFailed("Note content is required.", errors=[FieldError("note", "Note is required")])
    work_order = _load_work_order(db, work_order_id, ctx)

    note = models.WorkOrderNote(work_order_id=work_order.id, note=body.note.strip(), created_by=ctx.user.id)
    db.add(note)
    db.commit()
    db.refresh(note)
    return ok(schemas.NoteOut.model_validate(note).model_dump(mode="json"), message="Note added successfully!")

"""
Quote endpoints: request form, lifecycle actions, conversion, messages and attachments.

Every status change goes through ``lifecycle.check_transition`` before the
quote is touched, so a rejected action (409 wrong status, 403 wrong role)
leaves the row exactly as it was.
"""

import logging
from datetime import date, datetime, time
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from .. import lifecycle, models, notifications, schemas
from ..auth import RequestContext, get_request_context, require_staff
from ..conversion import attachment_kind, convert_quote
from ..database import get_db
from ..errors import Conflict, FieldError, Forbidden, NotFound, ValidationFailed, raise_if_errors
from ..lifecycle import QuoteAction
from ..quote_service import (
    add_message,
    expire_due_quotes,
    generate_quote_number,
    quote_detail,
    quote_summary,
)
from ..responses import Page, ok
from ..validators import to_cents, to_decimal, validate_provision, validate_quote_draft, validate_quote_submission

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotes", tags=["quotes"])


def _load_quote(db: Session, quote_id: int, ctx: RequestContext) -> models.Quote:
    quote = db.query(models.Quote).filter(models.Quote.id == quote_id).first()
    if not quote:
        raise NotFound("Quote not found")
    if not ctx.can_see_client(quote.client_id):
        raise Forbidden("You do not have access to this quote")
    return quote


def _ensure_open(quote: models.Quote, what: str):
    """Declined, Expired and Converted quotes accept no further changes."""
    if lifecycle.is_terminal(quote.status):
        raise Conflict(
            f"Quote is {quote.status}; {what} can no longer be added or changed.",
            details={"status": quote.status},
        )


def _scoped(db: Session, ctx: RequestContext):
    query = db.query(models.Quote)
    # Staff see every client unless an admin has switched into one
    if not ctx.is_staff_side or ctx.acting_as_other_client:
        query = query.filter(models.Quote.client_id == ctx.client_id)
    return query


def _draft_fields(body: schemas.QuoteFields) -> dict:
    fields = body.model_dump(exclude_unset=True)
    if fields.get("is_urgent") is None:
        fields.pop("is_urgent", None)
    raise_if_errors(validate_quote_draft(fields))
    return fields


# --- Queries ---

@router.get("")
def list_quotes(
    status: Optional[str] = None,
    urgency: Optional[bool] = None,
    search: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    client_id: Optional[int] = None,
    page: Page = Depends(),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    query = _scoped(db, ctx)
    if status:
        query = query.filter(models.Quote.status == status)
    if urgency is not None:
        query = query.filter(models.Quote.is_urgent.is_(urgency))
    if search:
        pattern = f"%{search.lower()}%"
        query = query.filter(or_(
            func.lower(models.Quote.quote_number).like(pattern),
            func.lower(models.Quote.property_name).like(pattern),
            func.lower(models.Quote.description).like(pattern),
            func.lower(models.Quote.title).like(pattern),
        ))
    if date_from:
        query = query.filter(models.Quote.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        query = query.filter(models.Quote.created_at <= datetime.combine(date_to, time.max))
    if client_id is not None and ctx.is_staff_side:
        query = query.filter(models.Quote.client_id == client_id)

    query = query.order_by(models.Quote.created_at.desc(), models.Quote.id.desc())
    rows, pagination = page.apply(query)
    return ok([quote_summary(q) for q in rows], pagination=pagination)


@router.get("/summary")
def quotes_summary(ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    """Counts per status, plus open urgent quotes and the overall total."""
    base = _scoped(db, ctx)
    counts = dict(
        base.with_entities(models.Quote.status, func.count(models.Quote.id))
        .group_by(models.Quote.status).all()
    )
    summary = {s.value: counts.get(s.value, 0) for s in models.QuoteStatus}
    summary["urgent"] = base.filter(
        models.Quote.is_urgent.is_(True),
        models.Quote.status.notin_([models.QuoteStatus.DECLINED.value, models.QuoteStatus.CONVERTED.value]),
    ).count()
    summary["total"] = sum(counts.values())
    return ok(summary)


@router.post("/expire-due")
def expire_due(ctx: RequestContext = Depends(require_staff), db: Session = Depends(get_db)):
    """Run the expiry sweep now."""
    expired = expire_due_quotes(db)
    for quote in expired:
        notifications.quote_event(db, quote, QuoteAction.EXPIRE.value)
    return ok({"expired_ids": [q.id for q in expired]}, message=f"{len(expired)} quote(s) expired")


# --- Request form ---

@router.post("", status_code=201)
def create_quote(
    body: schemas.QuoteFields,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    lifecycle.check_transition(models.QuoteStatus.DRAFT, QuoteAction.SAVE_DRAFT, ctx.role)
    fields = _draft_fields(body)

    quote = models.Quote(
        **fields,
        client_id=ctx.client_id,
        status=models.QuoteStatus.DRAFT.value,
        created_by=ctx.user.id,
    )
    db.add(quote)
    db.commit()
    db.refresh(quote)
    logger.info(f"Draft quote {quote.id} created by user {ctx.user.id}")
    return ok(quote_detail(quote, ctx.role), message="Quote draft created")


@router.get("/{quote_id}")
def get_quote(quote_id: int, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    return ok(quote_detail(_load_quote(db, quote_id, ctx), ctx.role))


@router.patch("/{quote_id}")
def update_quote(
    quote_id: int,
    body: schemas.QuoteFields,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    lifecycle.check_transition(quote.status, QuoteAction.SAVE_DRAFT, ctx.role)
    fields = _draft_fields(body)

    for field, value in fields.items():
        setattr(quote, field, value)
    db.commit()
    db.refresh(quote)
    return ok(quote_detail(quote, ctx.role), message="Quote draft saved")


@router.post("/{quote_id}/submit")
def submit_quote(quote_id: int, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    quote = _load_quote(db, quote_id, ctx)
    to_status = lifecycle.check_transition(quote.status, QuoteAction.SUBMIT, ctx.role)
    raise_if_errors(validate_quote_submission(quote), "Quote is missing required information")

    now = datetime.utcnow()
    if not quote.quote_number:
        quote.quote_number = generate_quote_number(db, now)
    quote.status = to_status
    quote.submitted_at = now
    add_message(
        db, quote, lifecycle.TRANSITION_MESSAGE_TYPES[QuoteAction.SUBMIT.value],
        f"Quote request {quote.quote_number} submitted for review", user=ctx.user,
    )
    db.commit()
    db.refresh(quote)
    logger.info(f"Quote {quote.quote_number} submitted by user {ctx.user.id}")

    notifications.quote_event(db, quote, QuoteAction.SUBMIT.value, ctx.user)
    return ok(quote_detail(quote, ctx.role), message="Quote submitted")


# --- Staff actions ---

@router.patch("/{quote_id}/request-info")
def request_info(
    quote_id: int,
    body: schemas.RequestInfoRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    to_status = lifecycle.check_transition(quote.status, QuoteAction.REQUEST_INFO, ctx.role)
    if not (body.message or "").strip():
        raise ValidationFailed(
            "A message describing the information needed is required",
            errors=[FieldError("message", "Message is required")],
        )

    quote.status = to_status
    add_message(
        db, quote, lifecycle.TRANSITION_MESSAGE_TYPES[QuoteAction.REQUEST_INFO.value],
        body.message.strip(), user=ctx.user,
    )
    db.commit()
    db.refresh(quote)
    logger.info(f"Information requested on quote {quote.quote_number} by user {ctx.user.id}")

    notifications.quote_event(db, quote, QuoteAction.REQUEST_INFO.value, ctx.user)
    return ok(quote_detail(quote, ctx.role), message="Information requested")


@router.patch("/{quote_id}/provide-quote")
def provide_quote(
    quote_id: int,
    body: schemas.ProvideQuoteRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    to_status = lifecycle.check_transition(quote.status, QuoteAction.PROVIDE_QUOTE, ctx.role)

    lines = [line.model_dump() for line in body.itemized_breakdown] if body.itemized_breakdown else None
    raise_if_errors(validate_provision(
        body.estimated_cost, body.estimated_hours, body.quote_valid_until, lines,
    ))

    previous_cost, previous_hours = quote.estimated_cost, quote.estimated_hours
    new_cost = to_cents(body.estimated_cost)
    new_hours = to_cents(body.estimated_hours)

    now = datetime.utcnow()
    quote.status = to_status
    quote.estimated_cost = new_cost
    quote.estimated_hours = new_hours
    quote.quote_notes = body.quote_notes
    quote.quote_valid_until = body.quote_valid_until
    quote.itemized_breakdown = [
        {"category": line.get("category") or "other", "description": line["description"].strip(),
         "cost": float(to_decimal(line["cost"]))}
        for line in lines
    ] if lines else None
    quote.quoted_at = now
    add_message(
        db, quote, lifecycle.TRANSITION_MESSAGE_TYPES[QuoteAction.PROVIDE_QUOTE.value],
        f"Quote provided: ${new_cost:,.2f} for {new_hours:g} hours"
        + (f". {body.quote_notes}" if body.quote_notes else ""),
        user=ctx.user,
        previous_cost=previous_cost, new_cost=new_cost,
        previous_hours=previous_hours, new_hours=new_hours,
    )
    db.commit()
    db.refresh(quote)
    logger.info(f"Quote {quote.quote_number} priced at {new_cost} by user {ctx.user.id}")

    notifications.quote_event(db, quote, QuoteAction.PROVIDE_QUOTE.value, ctx.user)
    return ok(quote_detail(quote, ctx.role), message="Quote provided")


# --- Client decisions ---

@router.patch("/{quote_id}/approve")
def approve_quote(
    quote_id: int,
    body: Optional[schemas.DecisionRequest] = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    to_status = lifecycle.check_transition(quote.status, QuoteAction.APPROVE, ctx.role)
    if lifecycle.is_expired(quote):
        raise ValidationFailed(
            "This quote has expired and can no longer be approved",
            errors=[FieldError("quote_valid_until", "Quote validity date has passed")],
        )

    quote.status = to_status
    quote.approved_at = datetime.utcnow()
    comment = (body.message or "").strip() if body else ""
    add_message(
        db, quote, lifecycle.TRANSITION_MESSAGE_TYPES[QuoteAction.APPROVE.value],
        f"Quote approved by {ctx.user.full_name}. Ready to convert to work order."
        + (f" {comment}" if comment else ""),
        user=ctx.user,
    )
    db.commit()
    db.refresh(quote)
    logger.info(f"Quote {quote.quote_number} approved by user {ctx.user.id}")

    notifications.quote_event(db, quote, QuoteAction.APPROVE.value, ctx.user)
    return ok(quote_detail(quote, ctx.role), message="Quote approved")


def _decline(quote: models.Quote, ctx: RequestContext, db: Session, message_type: str, reason: Optional[str]):
    to_status = lifecycle.check_transition(quote.status, QuoteAction.DECLINE, ctx.role)
    quote.status = to_status
    quote.declined_at = datetime.utcnow()
    reason = (reason or "").strip()
    add_message(
        db, quote, message_type,
        f"Quote declined by {ctx.user.full_name}" + (f": {reason}" if reason else ""),
        user=ctx.user,
    )
    db.commit()
    db.refresh(quote)
    logger.info(f"Quote {quote.quote_number} declined by user {ctx.user.id}")
    notifications.quote_event(db, quote, QuoteAction.DECLINE.value, ctx.user)
    return ok(quote_detail(quote, ctx.role), message="Quote declined")


@router.patch("/{quote_id}/decline-quote")
def decline_quote(
    quote_id: int,
    body: Optional[schemas.DecisionRequest] = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    return _decline(quote, ctx, db, models.MessageType.DECLINED_BY_CLIENT.value, body.message if body else None)


@router.patch("/{quote_id}/decline")
def decline_quote_as_staff(
    quote_id: int,
    body: Optional[schemas.DecisionRequest] = None,
    ctx: RequestContext = Depends(require_staff),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    return _decline(quote, ctx, db, models.MessageType.DECLINED_BY_STAFF.value, body.message if body else None)


# --- Conversion ---

@router.post("/{quote_id}/convert")
def convert(
    quote_id: int,
    body: Optional[schemas.ConvertRequest] = None,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    body = body or schemas.ConvertRequest()
    work_order = convert_quote(
        db, quote, ctx.user,
        supplier_name=body.supplier_name,
        schedule_date=body.schedule_date,
        po_number=body.po_number,
    )
    db.refresh(quote)
    notifications.quote_event(db, quote, QuoteAction.CONVERT.value, ctx.user)
    return ok({
        "work_order": {"id": work_order.id, "job_no": work_order.job_no, "status": work_order.status},
        "quote": quote_detail(quote, ctx.role),
    }, message=f"Quote converted to work order {work_order.job_no}")


# --- Messages ---

@router.get("/{quote_id}/messages")
def list_messages(quote_id: int, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    quote = _load_quote(db, quote_id, ctx)
    messages = db.query(models.QuoteMessage).filter(
        models.QuoteMessage.quote_id == quote.id
    ).order_by(models.QuoteMessage.created_at.asc(), models.QuoteMessage.id.asc()).all()
    return ok([schemas.QuoteMessageOut.model_validate(m).model_dump(mode="json") for m in messages])


@router.post("/{quote_id}/messages", status_code=201)
def post_message(
    quote_id: int,
    body: schemas.MessageCreate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    _ensure_open(quote, "messages")

    errors = []
    if not (body.message or "").strip():
        errors.append(FieldError("message", "Message cannot be empty"))
    if body.message_type not in models.USER_MESSAGE_TYPES:
        errors.append(FieldError(
            "message_type", f"Message type must be one of: {', '.join(models.USER_MESSAGE_TYPES)}",
        ))
    raise_if_errors(errors)

    entry = add_message(db, quote, body.message_type, body.message.strip(), user=ctx.user)
    db.commit()
    db.refresh(entry)
    return ok(schemas.QuoteMessageOut.model_validate(entry).model_dump(mode="json"), message="Message posted")


# --- Attachments ---

@router.get("/{quote_id}/attachments")
def list_attachments(quote_id: int, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    quote = _load_quote(db, quote_id, ctx)
    return ok([schemas.AttachmentOut.model_validate(a).model_dump(mode="json") for a in quote.attachments])


@router.post("/{quote_id}/attachments", status_code=201)
def add_attachment(
    quote_id: int,
    body: schemas.AttachmentCreate,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    quote = _load_quote(db, quote_id, ctx)
    _ensure_open(quote, "attachments")

    errors = []
    if not (body.file_name or "").strip():
        errors.append(FieldError("file_name", "File name is required"))
    if not (body.file_url or "").strip():
        errors.append(FieldError("file_url", "File URL is required"))
    if body.file_size is not None and body.file_size < 0:
        errors.append(FieldError("file_size", "File size cannot be negative"))
    raise_if_errors(errors)

    attachment = models.QuoteAttachment(
        quote_id=quote.id,
        user_id=ctx.user.id,
        file_type=attachment_kind(body.mime_type),
        file_name=body.file_name.strip(),
        file_url=body.file_url.strip(),
        file_size=body.file_size,
        mime_type=body.mime_type,
        description=body.description,
    )
    db.add(attachment)
    db.commit()
    db.refresh(attachment)
    return ok(schemas.AttachmentOut.model_validate(attachment).model_dump(mode="json"), message="Attachment added")


@router.delete("/attachments/{attachment_id}")
def delete_attachment(
    attachment_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    attachment = db.query(models.QuoteAttachment).filter(models.QuoteAttachment.id == attachment_id).first()
    if not attachment:
        raise NotFound("Attachment not found")
    quote = _load_quote(db, attachment.quote_id, ctx)
    _ensure_open(quote, "attachments")

    # Each side may remove what its own side uploaded
    uploader_role = attachment.uploader.role if attachment.uploader else None
    if not ctx.is_admin:
        same_side = (
            (ctx.is_staff_side and uploader_role in models.STAFF_SIDE_ROLES)
            or (not ctx.is_staff_side and uploader_role in models.CLIENT_SIDE_ROLES)
        )
        if not same_side:
            raise Forbidden("You can only delete attachments uploaded by your side")

    db.delete(attachment)
    db.commit()
    return ok({"id": attachment_id}, message="Attachment deleted")

"""
Quote → work order conversion.

Everything happens in one database transaction: the job number, the work
order, its notes and photos, and the quote's move to Converted either all
land or none do.
"""

import logging
import re
from datetime import date, datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import lifecycle, models
from .config import settings
from .errors import Conflict, PortalError
from .quote_service import add_message

logger = logging.getLogger(__name__)

JOB_NUMBER_RE = re.compile(r"^RBWO(\d+)$")


def generate_job_number(db: Session) -> str:
    """Next RBWO###### after the highest existing one."""
    existing = db.query(models.WorkOrder.job_no).filter(
        models.WorkOrder.job_no.like("RBWO%")
    ).all()
    highest = 0
    for (job_no,) in existing:
        match = JOB_NUMBER_RE.match(job_no or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return f"RBWO{highest + 1:06d}"


def attachment_kind(mime_type: Optional[str]) -> str:
    mime_type = (mime_type or "").lower()
    if mime_type.startswith("image/"):
        return models.AttachmentType.PHOTO.value
    if mime_type.startswith("application/") or mime_type.startswith("text/"):
        return models.AttachmentType.DOCUMENT.value
    return models.AttachmentType.OTHER.value


def _estimate_note(quote: models.Quote) -> str:
    cost = f"${float(quote.estimated_cost):,.2f}" if quote.estimated_cost is not None else "n/a"
    hours = f"{float(quote.estimated_hours):g}" if quote.estimated_hours is not None else "n/a"
    return f"Created from Quote {quote.quote_number}. Estimated cost: {cost}, Estimated hours: {hours}"


def convert_quote(
    db: Session,
    quote: models.Quote,
    user: models.User,
    supplier_name: Optional[str] = None,
    schedule_date: Optional[date] = None,
    po_number: Optional[str] = None,
) -> models.WorkOrder:
    """
    Turn an Approved quote into a work order and mark the quote Converted.

    The caller passes the acting user; role and status are checked against
    the lifecycle table before anything is written. Returns the new work
    order, already committed.
    """
    if quote.converted_to_work_order_id:
        raise Conflict(
            "Quote has already been converted to a work order",
            details={"existing_work_order_id": quote.converted_to_work_order_id},
        )
    lifecycle.check_transition(quote.status, lifecycle.QuoteAction.CONVERT, user.role)

    now = datetime.utcnow()
    try:
        work_order = models.WorkOrder(
            job_no=generate_job_number(db),
            date=schedule_date or now.date(),
            status=models.WorkOrderStatus.PENDING.value,
            work_order_type="from_quote",
            supplier_name=(supplier_name or "").strip() or settings.DEFAULT_SUPPLIER_NAME,
            supplier_phone=settings.DEFAULT_SUPPLIER_PHONE,
            supplier_email=settings.DEFAULT_SUPPLIER_EMAIL,
            property_name=quote.property_name,
            property_address=quote.property_address,
            property_phone=quote.property_phone,
            description=quote.description,
            po_number=po_number,
            authorized_by=user.full_name,
            authorized_contact=user.phone_number,
            authorized_email=quote.contact_email,
            is_urgent=quote.is_urgent,
            created_from_quote_id=quote.id,
            quote_number=quote.quote_number,
            created_by=user.id,
            client_id=quote.client_id,
        )
        db.add(work_order)
        db.flush()

        db.add(models.WorkOrderNote(
            work_order_id=work_order.id, note=_estimate_note(quote), created_by=user.id,
        ))

        for attachment in quote.attachments:
            if attachment.file_type == models.AttachmentType.PHOTO.value:
                db.add(models.Photo(
                    work_order_id=work_order.id,
                    file_path=attachment.file_url,
                    file_name=attachment.file_name,
                    description=attachment.description or f"Photo from Quote {quote.quote_number}",
                    uploaded_by=attachment.user_id,
                ))
            elif attachment.file_type == models.AttachmentType.DOCUMENT.value:
                db.add(models.WorkOrderNote(
                    work_order_id=work_order.id,
                    note=f"Document from Quote: {attachment.file_name}\nDownload: {attachment.file_url}",
                    created_by=user.id,
                ))

        quote.status = models.QuoteStatus.CONVERTED.value
        quote.converted_at = now
        quote.converted_to_work_order_id = work_order.id
        add_message(
            db, quote, models.MessageType.CONVERTED.value,
            f"Quote converted to Work Order {work_order.job_no}", user=user,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Conversion of quote {quote.id} failed: {e}")
        raise PortalError("Failed to convert quote to work order") from e

    db.refresh(work_order)
    logger.info(f"Quote {quote.quote_number} converted to work order {work_order.job_no} by user {user.id}")
    return work_order

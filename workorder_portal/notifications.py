"""
Alert fan-out for quote and work-order events.

Alerts are a side effect: they are written after the primary change has been
committed, and a failure here is logged and dropped rather than undoing the
change the user asked for.
"""

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger(__name__)


def staff_recipients(db: Session) -> list:
    return db.query(models.User).filter(
        models.User.role.in_(models.STAFF_SIDE_ROLES),
        models.User.is_active.is_(True),
    ).all()


def _deliver(
    db: Session,
    recipients: Iterable[models.User],
    alert_type: str,
    title: str,
    message: str,
    actor_id: Optional[int] = None,
    quote_id: Optional[int] = None,
    work_order_id: Optional[int] = None,
) -> int:
    seen = set()
    try:
        for user in recipients:
            if user is None or user.id == actor_id or user.id in seen:
                continue
            seen.add(user.id)
            db.add(models.Alert(
                user_id=user.id,
                type=alert_type,
                title=title,
                message=message,
                quote_id=quote_id,
                work_order_id=work_order_id,
            ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning(f"Failed to create '{alert_type}' alerts: {e}")
        return 0
    return len(seen)


def quote_event(db: Session, quote: models.Quote, action: str, actor: Optional[models.User] = None) -> int:
    """Tell the other side of the conversation that a quote moved."""
    label = quote.quote_number or quote.title or f"#{quote.id}"
    titles = {
        "submit": ("New quote request", f"Quote {label} has been submitted for pricing."),
        "request_info": ("Information requested", f"More information is needed for quote {label}."),
        "provide_quote": ("Quote ready", f"Quote {label} has been priced and is awaiting your approval."),
        "approve": ("Quote approved", f"Quote {label} has been approved."),
        "decline": ("Quote declined", f"Quote {label} has been declined."),
        "convert": ("Quote converted", f"Quote {label} has been converted to a work order."),
        "expire": ("Quote expired", f"Quote {label} has passed its validity date."),
    }
    if action not in titles:
        return 0
    title, message = titles[action]

    if action in ("submit", "approve", "decline"):
        recipients = staff_recipients(db)
    else:
        recipients = [quote.creator]

    return _deliver(
        db, recipients, "quote", title, message,
        actor_id=actor.id if actor else None, quote_id=quote.id,
    )


def work_order_created(db: Session, work_order: models.WorkOrder, actor: models.User) -> int:
    alert_type = "urgent" if work_order.is_urgent else "work-order"
    title = "Urgent work order" if work_order.is_urgent else "New work order"
    return _deliver(
        db, staff_recipients(db), alert_type, title,
        f"Work order {work_order.job_no} for {work_order.property_name} was created.",
        actor_id=actor.id, work_order_id=work_order.id,
    )


def work_order_status_changed(
    db: Session, work_order: models.WorkOrder, previous: str, actor: models.User,
) -> int:
    if work_order.status == models.WorkOrderStatus.COMPLETED.value:
        alert_type, title = "completion", "Work order completed"
    else:
        alert_type, title = "status-change", "Work order status changed"
    recipients = [work_order.creator]
    if actor.role in models.CLIENT_SIDE_ROLES:
        recipients.extend(staff_recipients(db))
    return _deliver(
        db, recipients, alert_type, title,
        f"Work order {work_order.job_no} changed from {previous} to {work_order.status}.",
        actor_id=actor.id, work_order_id=work_order.id,
    )

"""
Quote persistence helpers: numbering, timeline messages, the expiry sweep and
response shaping.
"""

import logging
import re
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from . import lifecycle, models, schemas
from .validators import breakdown_total

logger = logging.getLogger(__name__)

QUOTE_NUMBER_RE = re.compile(r"^QTE-(\d{4})-(\d+)$")


def generate_quote_number(db: Session, now: Optional[datetime] = None) -> str:
    """Next QTE-YYYY-### for the current year."""
    year = (now or datetime.utcnow()).year
    prefix = f"QTE-{year}-"
    existing = db.query(models.Quote.quote_number).filter(
        models.Quote.quote_number.like(f"{prefix}%")
    ).all()

    highest = 0
    for (number,) in existing:
        match = QUOTE_NUMBER_RE.match(number or "")
        if match:
            highest = max(highest, int(match.group(2)))
    return f"{prefix}{highest + 1:03d}"


def add_message(
    db: Session,
    quote: models.Quote,
    message_type: str,
    message: str,
    user: Optional[models.User] = None,
    **audit,
) -> models.QuoteMessage:
    """Append a timeline entry. ``audit`` carries previous/new cost and hours."""
    entry = models.QuoteMessage(
        quote_id=quote.id,
        user_id=user.id if user else None,
        message_type=message_type,
        message=message,
        **audit,
    )
    db.add(entry)
    return entry


def expire_due_quotes(db: Session, now: Optional[datetime] = None) -> List[models.Quote]:
    """
    Move every non-terminal quote whose validity date has passed to Expired.

    Each expired quote gets a system ``expired`` message. Commits once.
    """
    now = now or datetime.utcnow()
    candidates = db.query(models.Quote).filter(
        models.Quote.quote_valid_until.isnot(None),
        models.Quote.quote_valid_until < now,
        models.Quote.status.notin_(sorted(lifecycle.TERMINAL_STATUSES)),
    ).all()

    expired = []
    for quote in candidates:
        lifecycle.check_transition(quote.status, lifecycle.QuoteAction.EXPIRE, lifecycle.SYSTEM_ROLE)
        previous = quote.status
        quote.status = models.QuoteStatus.EXPIRED.value
        quote.expired_at = now
        add_message(
            db, quote, models.MessageType.EXPIRED.value,
            f"Quote expired (was {previous}); validity date "
            f"{quote.quote_valid_until.strftime('%Y-%m-%d')} has passed.",
        )
        expired.append(quote)

    if expired:
        db.commit()
        logger.info(f"Expired {len(expired)} quote(s): {[q.id for q in expired]}")
    return expired


def quote_summary(quote: models.Quote) -> dict:
    return schemas.QuoteOut.model_validate(quote).model_dump(mode="json")


def quote_detail(quote: models.Quote, role: str, now: Optional[datetime] = None) -> dict:
    data = schemas.QuoteDetail.model_validate(quote).model_dump(mode="json")
    data["breakdown_total"] = float(breakdown_total(quote.itemized_breakdown))
    data["is_expired"] = lifecycle.is_expired(quote, now)
    data["is_terminal"] = lifecycle.is_terminal(quote.status)
    data["available_actions"] = lifecycle.allowed_actions(quote.status, role)
    data["client_name"] = quote.client.name if quote.client else None
    data["created_by_name"] = quote.creator.full_name if quote.creator else None
    return data

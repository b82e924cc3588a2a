"""
In-app alerts for the signed-in user.

Alerts are written by ``notifications`` after quote and work-order changes;
every query here is scoped to the caller's own rows.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import models, schemas
from ..auth import RequestContext, get_request_context
from ..database import get_db
from ..errors import NotFound
from ..responses import Page, ok

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/alerts", tags=["alerts"])


def _mine(db: Session, ctx: RequestContext):
    return db.query(models.Alert).filter(models.Alert.user_id == ctx.user.id)


@router.get("")
def list_alerts(
    filter: Optional[str] = "all",
    page: Page = Depends(),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """``filter`` is ``all``, ``unread`` or one of the alert types."""
    query = _mine(db, ctx)
    if filter == "unread":
        query = query.filter(models.Alert.is_read.is_(False))
    elif filter in models.ALERT_TYPES:
        query = query.filter(models.Alert.type == filter)
    query = query.order_by(models.Alert.created_at.desc(), models.Alert.id.desc())
    rows, pagination = page.apply(query)
    return ok([schemas.AlertOut.model_validate(a).model_dump(mode="json") for a in rows], pagination=pagination)


@router.get("/unread-count")
def unread_count(ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    return ok({"count": _mine(db, ctx).filter(models.Alert.is_read.is_(False)).count()})


@router.patch("/mark-all-read")
def mark_all_read(ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    updated = _mine(db, ctx).filter(models.Alert.is_read.is_(False)).update(
        {models.Alert.is_read: True}, synchronize_session=False,
    )
    db.commit()
    logger.info(f"User {ctx.user.id} marked {updated} alerts as read")
    return ok({"updated": updated}, message="All alerts marked as read")


@router.patch("/{alert_id}")
def mark_read(alert_id: int, ctx: RequestContext = Depends(get_request_context), db: Session = Depends(get_db)):
    alert = _mine(db, ctx).filter(models.Alert.id == alert_id).first()
    if not alert:
        raise NotFound("Alert not found")
    alert.is_read = True
    db.commit()
    db.refresh(alert)
    return ok(schemas.AlertOut.model_validate(alert).model_dump(mode="json"))

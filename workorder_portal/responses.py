"""Success envelope and pagination helpers shared by the routers."""

import math
from typing import Optional

from fastapi import Query


def ok(data=None, message: Optional[str] = None, pagination: Optional[dict] = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination
    return body


class Page:
    """``page``/``limit`` query parameters, usable as a dependency."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def apply(self, query):
        """Run ``query`` for this page. Returns (rows, pagination dict)."""
        total = query.order_by(None).count()
        rows = query.offset(self.offset).limit(self.limit).all()
        return rows, {
            "page": self.page,
            "limit": self.limit,
            "total": total,
            "pages": math.ceil(total / self.limit) if total else 0,
        }

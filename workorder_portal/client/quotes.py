from datetime import date, datetime
from typing import List, Optional, Union

from .breakdown import BreakdownDraft
from .session import PortalSession


class QuoteClient:
    def __init__(self, session: PortalSession):
        self.session = session

    # --- queries ---

    def list(self, **filters) -> dict:
        """Returns the full envelope so callers get ``pagination`` too."""
        return self.session.request("GET", "/quotes", params=filters)

    def summary(self) -> dict:
        return self.session.data("GET", "/quotes/summary")

    def get(self, quote_id: int) -> dict:
        return self.session.data("GET", f"/quotes/{quote_id}")

    # --- request form ---

    def create(self, **fields) -> dict:
        return self.session.data("POST", "/quotes", json=fields)

    def update(self, quote_id: int, **fields) -> dict:
        return self.session.data("PATCH", f"/quotes/{quote_id}", json=fields)

    def submit(self, quote_id: int) -> dict:
        return self.session.data("POST", f"/quotes/{quote_id}/submit")

    # --- lifecycle ---

    def request_info(self, quote_id: int, message: str) -> dict:
        return self.session.data("PATCH", f"/quotes/{quote_id}/request-info", json={"message": message})

    def provide_quote(
        self,
        quote_id: int,
        estimated_cost,
        estimated_hours,
        quote_notes: Optional[str] = None,
        quote_valid_until: Optional[Union[datetime, date]] = None,
        breakdown: Optional[Union[BreakdownDraft, List[dict]]] = None,
    ) -> dict:
        if isinstance(breakdown, BreakdownDraft):
            breakdown = breakdown.to_payload()
        return self.session.data("PATCH", f"/quotes/{quote_id}/provide-quote", json={
            "estimated_cost": estimated_cost,
            "estimated_hours": estimated_hours,
            "quote_notes": quote_notes,
            "quote_valid_until": quote_valid_until,
            "itemized_breakdown": breakdown,
        })

    def approve(self, quote_id: int, message: Optional[str] = None) -> dict:
        return self.session.data("PATCH", f"/quotes/{quote_id}/approve", json={"message": message})

    def decline(self, quote_id: int, reason: Optional[str] = None) -> dict:
        return self.session.data("PATCH", f"/quotes/{quote_id}/decline-quote", json={"message": reason})

    def expire_due(self) -> List[int]:
        return self.session.data("POST", "/quotes/expire-due")["expired_ids"]

    # --- conversion ---

    def convert(
        self,
        quote_id: int,
        supplier_name: Optional[str] = None,
        schedule_date: Optional[date] = None,
        po_number: Optional[str] = None,
    ) -> dict:
        return self.session.data("POST", f"/quotes/{quote_id}/convert", json={
            "supplier_name": supplier_name,
            "schedule_date": schedule_date,
            "po_number": po_number,
        })

    def convert_quote(self, quote_id: int, **options) -> int:
        """Convert and return the id of the work order the server created."""
        return self.convert(quote_id, **options)["work_order"]["id"]

    def open_converted_work_order(self, quote_id: int, work_orders, **options) -> dict:
        """Convert, then load the new work order by the id the conversion returned."""
        work_order_id = self.convert_quote(quote_id, **options)
        return work_orders.get(work_order_id)

    # --- conversation ---

    def messages(self, quote_id: int) -> List[dict]:
        return self.session.data("GET", f"/quotes/{quote_id}/messages")

    def post_message(self, quote_id: int, message: str, message_type: str = "comment") -> dict:
        return self.session.data(
            "POST", f"/quotes/{quote_id}/messages", json={"message": message, "message_type": message_type},
        )

    def attachments(self, quote_id: int) -> List[dict]:
        return self.session.data("GET", f"/quotes/{quote_id}/attachments")

    def add_attachment(self, quote_id: int, file_name: str, file_url: str, **meta) -> dict:
        return self.session.data(
            "POST", f"/quotes/{quote_id}/attachments", json={"file_name": file_name, "file_url": file_url, **meta},
        )

    def delete_attachment(self, attachment_id: int) -> dict:
        return self.session.data("DELETE", f"/quotes/attachments/{attachment_id}")

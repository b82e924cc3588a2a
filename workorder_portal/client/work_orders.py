from typing import Optional

from .optimistic import OptimisticToggle
from .session import PortalSession


class WorkOrderClient:
    def __init__(self, session: PortalSession):
        self.session = session

    def list(self, **filters) -> dict:
        return self.session.request("GET", "/work-orders", params=filters)

    def summary(self) -> dict:
        return self.session.data("GET", "/work-orders/summary")

    def get(self, work_order_id: int) -> dict:
        return self.session.data("GET", f"/work-orders/{work_order_id}")

    def create(self, **fields) -> dict:
        return self.session.data("POST", "/work-orders", json=fields)

    def update_status(self, work_order_id: int, status: str, notes: Optional[str] = None) -> dict:
        return self.session.data(
            "PATCH", f"/work-orders/{work_order_id}/status", json={"status": status, "notes": notes},
        )

    def add_note(self, work_order_id: int, note: str) -> dict:
        return self.session.data("POST", f"/work-orders/{work_order_id}/notes", json={"note": note})

    def set_urgent(self, work_order_id: int, is_urgent: bool) -> dict:
        return self.session.data("PATCH", f"/work-orders/{work_order_id}/urgent", json={"is_urgent": is_urgent})

    def toggle_urgent(self, work_order_id: int, toggle: OptimisticToggle) -> bool:
        """Flip the flag locally, write it, and revert the toggle if the write fails."""
        toggle.run(not toggle.value, lambda value: self.set_urgent(work_order_id, value))
        return toggle.value

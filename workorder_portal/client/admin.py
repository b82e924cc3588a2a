"""Wrappers for client administration, user management and alerts."""

from typing import List

from .session import PortalSession


class AdminClient:
    def __init__(self, session: PortalSession):
        self.session = session

    # --- clients ---

    def list_clients(self, **filters) -> dict:
        return self.session.request("GET", "/clients", params=filters)

    def get_client(self, client_id: int) -> dict:
        return self.session.data("GET", f"/clients/{client_id}")

    def create_client(self, name: str, code: str, **fields) -> dict:
        return self.session.data("POST", "/clients", json={"name": name, "code": code, **fields})

    def update_client(self, client_id: int, **fields) -> dict:
        return self.session.data("PUT", f"/clients/{client_id}", json=fields)

    def delete_client(self, client_id: int) -> dict:
        return self.session.request("DELETE", f"/clients/{client_id}", params={"confirm": True})

    def client_stats(self, client_id: int) -> dict:
        return self.session.data("GET", f"/clients/{client_id}/stats")

    # --- users ---

    def list_users(self, **params) -> dict:
        return self.session.request("GET", "/users", params=params)

    def create_user(self, full_name: str, email: str, role: str, **fields) -> dict:
        return self.session.data(
            "POST", "/users", json={"full_name": full_name, "email": email, "role": role, **fields},
        )

    def update_user(self, user_id: int, **fields) -> dict:
        return self.session.data("PATCH", f"/users/{user_id}", json=fields)

    def delete_user(self, user_id: int) -> dict:
        return self.session.request("DELETE", f"/users/{user_id}")


class AlertClient:
    def __init__(self, session: PortalSession):
        self.session = session

    def list(self, filter: str = "all", **params) -> dict:
        return self.session.request("GET", "/alerts", params={"filter": filter, **params})

    def unread_count(self) -> int:
        return self.session.data("GET", "/alerts/unread-count")["count"]

    def mark_read(self, alert_id: int) -> dict:
        return self.session.data("PATCH", f"/alerts/{alert_id}")

    def mark_all_read(self) -> int:
        return self.session.data("PATCH", "/alerts/mark-all-read")["updated"]

    def unread(self) -> List[dict]:
        return self.list(filter="unread")["data"]

"""
Caller-side session: bearer token, admin client context and the alert poller.

A PortalSession is created once per signed-in user and handed to the
resource clients; nothing here lives in module globals. ``init(token)``
starts the session, ``teardown()`` stops polling and forgets the token.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..config import settings
from .polling import AlertPoller

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A non-2xx response, carrying the server's error envelope."""

    def __init__(
        self,
        status_code: int,
        message: str,
        errors: Optional[List[Dict[str, str]]] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        self.details = details or {}

    def field_errors(self) -> Dict[str, str]:
        """Errors keyed by field, for mapping back onto form inputs."""
        return {e.get("field"): e.get("message") for e in self.errors}


def _encode(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _encode(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_encode(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class PortalSession:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        http: Optional[httpx.Client] = None,
        api_prefix: str = "/api",
        poll_alerts: bool = True,
        poll_seconds: Optional[float] = None,
        on_unread: Optional[Callable[[int], None]] = None,
    ):
        self._owns_http = http is None
        self.http = http or httpx.Client(base_url=base_url, timeout=30.0)
        self.api_prefix = api_prefix
        self.token: Optional[str] = None
        self.client_context: Optional[int] = None
        self.user: Optional[dict] = None
        self._poll_alerts = poll_alerts
        self._poll_seconds = poll_seconds if poll_seconds is not None else settings.ALERT_POLL_SECONDS
        self._on_unread = on_unread
        self.poller: Optional[AlertPoller] = None

    # --- lifecycle ---

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def init(self, token: str, user: Optional[dict] = None) -> "PortalSession":
        if self.token is not None:
            self.teardown(close_http=False)
        self.token = token
        self.user = user
        if self._poll_alerts:
            self.poller = AlertPoller(self, interval=self._poll_seconds, on_update=self._on_unread)
            self.poller.start()
        return self

    def teardown(self, close_http: bool = True):
        if self.poller is not None:
            self.poller.stop()
            self.poller = None
        self.token = None
        self.user = None
        self.client_context = None
        if close_http and self._owns_http:
            self.http.close()

    def set_client_context(self, client_id: Optional[int]):
        """Act as another client (admin only; ignored by the server otherwise)."""
        self.client_context = client_id

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.teardown()

    # --- transport ---

    def headers(self) -> Dict[str, str]:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.client_context is not None:
            headers["X-Client-Context"] = str(self.client_context)
        return headers

    def request(self, method: str, path: str, json: Any = None, params: Optional[dict] = None) -> dict:
        """Send one request and return the decoded success envelope."""
        response = self.http.request(
            method,
            f"{self.api_prefix}{path}",
            json=_encode(json) if json is not None else None,
            params=_encode({k: v for k, v in params.items() if v is not None}) if params else None,
            headers=self.headers(),
        )
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text or response.reason_phrase}

        if response.status_code >= 400:
            raise ApiError(
                response.status_code,
                body.get("message") or "Request failed",
                errors=body.get("errors"),
                details=body.get("details"),
            )
        return body

    def data(self, method: str, path: str, **kwargs) -> Any:
        return self.request(method, path, **kwargs).get("data")

    # --- auth ---

    def login(self, email: str, password: str) -> dict:
        data = self.data("POST", "/auth/login", json={"email": email, "password": password})
        self.init(data["token"], data.get("user"))
        return data["user"]

    def me(self) -> dict:
        return self.data("GET", "/auth/me")

    def logout(self):
        try:
            if self.token:
                self.request("POST", "/auth/logout")
        finally:
            self.teardown(close_http=False)

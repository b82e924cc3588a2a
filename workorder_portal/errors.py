"""
Error taxonomy and the JSON error envelope.

Every failure leaves the service as

    {"success": false, "message": "...", "errors": [{"field", "message"}], "details": {...}}

with ``errors`` and ``details`` present only when they carry something.
Validation failures are 400, authorization 403, missing records 404, state
conflicts (including lifecycle transitions that are not allowed from the
current status) 409.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


@dataclass
class FieldError:
    field: str
    message: str

    def to_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class PortalError(Exception):
    status_code = 500

    def __init__(
        self,
        message: str,
        errors: Optional[List[FieldError]] = None,
        details: Optional[dict] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.errors:
            body["errors"] = [e.to_dict() for e in self.errors]
        if self.details:
            body["details"] = self.details
        return body


class ValidationFailed(PortalError):
    status_code = 400


class Forbidden(PortalError):
    status_code = 403


class NotFound(PortalError):
    status_code = 404


class Conflict(PortalError):
    status_code = 409


class TransitionRejected(Conflict):
    """Action is not allowed from the quote's current status."""


def raise_if_errors(errors: List[FieldError], message: Optional[str] = None):
    if errors:
        raise ValidationFailed(message or errors[0].message, errors=errors)


# --- FastAPI wiring ---

async def _portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _http_exception_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation error", "errors": errors},
    )


def install_error_handlers(app: FastAPI):
    app.add_exception_handler(PortalError, _portal_error_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

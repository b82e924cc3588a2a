"""
Field-level validation for quote requests, quote provisioning, work orders and clients.

Validators return a list of FieldError instead of raising on the first
problem, so a single response can enumerate everything that is missing or
invalid. Callers hand the list to ``errors.raise_if_errors``.
"""

import re
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, List, Optional

from .errors import FieldError
from .models import BREAKDOWN_CATEGORIES

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
CLIENT_CODE_RE = re.compile(r"^[A-Z0-9_-]+$")

MIN_DESCRIPTION_LENGTH = 20
MAX_TITLE_LENGTH = 255

CENTS = Decimal("0.01")
# Numeric(10, 2) and Numeric(8, 2) columns
MAX_COST = Decimal("99999999.99")
MAX_HOURS = Decimal("999999.99")


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def is_valid_email(value: Optional[str]) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value))


def is_valid_client_code(code: Optional[str]) -> bool:
    return bool(code) and bool(CLIENT_CODE_RE.match(code))


def to_decimal(value) -> Optional[Decimal]:
    """Parse a number from a form value; None when it isn't one."""
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def to_cents(value) -> Optional[Decimal]:
    """Parse and round to cents; None when not a number or too large to store."""
    parsed = to_decimal(value)
    if parsed is None or abs(parsed) > MAX_COST:
        return None
    return parsed.quantize(CENTS, rounding=ROUND_HALF_UP)


# --- Quote request (client side) ---

def validate_quote_draft(fields: dict) -> List[FieldError]:
    """Format checks for whatever a draft save supplies. Nothing is required."""
    errors = []
    title = fields.get("title")
    if title and len(title) > MAX_TITLE_LENGTH:
        errors.append(FieldError("title", f"Title must not exceed {MAX_TITLE_LENGTH} characters"))
    email = fields.get("contact_email")
    if not _blank(email) and not is_valid_email(email):
        errors.append(FieldError("contact_email", "Valid email is required"))
    return errors


def validate_quote_submission(quote) -> List[FieldError]:
    """Everything a draft needs before it can be submitted for pricing."""
    errors = []
    if _blank(quote.title):
        errors.append(FieldError("title", "Title is required"))
    elif len(quote.title) > MAX_TITLE_LENGTH:
        errors.append(FieldError("title", f"Title must not exceed {MAX_TITLE_LENGTH} characters"))
    if _blank(quote.property_name):
        errors.append(FieldError("property_name", "Property name is required"))
    if _blank(quote.description):
        errors.append(FieldError("description", "Description is required"))
    elif len(quote.description.strip()) < MIN_DESCRIPTION_LENGTH:
        errors.append(FieldError(
            "description", f"Description must be at least {MIN_DESCRIPTION_LENGTH} characters",
        ))
    if _blank(quote.contact_person):
        errors.append(FieldError("contact_person", "Contact name is required"))
    if _blank(quote.contact_email):
        errors.append(FieldError("contact_email", "Contact email is required"))
    elif not is_valid_email(quote.contact_email):
        errors.append(FieldError("contact_email", "Valid email is required"))
    return errors


# --- Quote provisioning (staff side) ---

def validate_breakdown(lines: Optional[Iterable[dict]]) -> List[FieldError]:
    errors = []
    for index, line in enumerate(lines or []):
        prefix = f"itemized_breakdown.{index}"
        category = line.get("category") or "other"
        if category not in BREAKDOWN_CATEGORIES:
            errors.append(FieldError(
                f"{prefix}.category", f"Category must be one of: {', '.join(BREAKDOWN_CATEGORIES)}",
            ))
        if _blank(line.get("description")):
            errors.append(FieldError(f"{prefix}.description", "Description is required"))
        cost = to_decimal(line.get("cost"))
        if _blank(line.get("cost")) or cost is None:
            errors.append(FieldError(f"{prefix}.cost", "Cost is required and must be a number"))
        elif cost < 0:
            errors.append(FieldError(f"{prefix}.cost", "Cost cannot be negative"))
        elif cost > MAX_COST:
            errors.append(FieldError(f"{prefix}.cost", f"Cost cannot exceed {MAX_COST:,}"))
    return errors


def breakdown_total(lines: Optional[Iterable[dict]]) -> Decimal:
    """Sum of line costs, rounded to cents. Derived on demand, never stored."""
    total = Decimal("0")
    for line in lines or []:
        cost = to_decimal(line.get("cost"))
        if cost is not None:
            total += cost
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def validate_provision(
    estimated_cost,
    estimated_hours,
    quote_valid_until: Optional[datetime],
    itemized_breakdown: Optional[list],
    now: Optional[datetime] = None,
) -> List[FieldError]:
    now = now or datetime.utcnow()
    errors = []
    cost = to_decimal(estimated_cost)
    if cost is not None and cost > MAX_COST:
        errors.append(FieldError("estimated_cost", f"Estimated cost cannot exceed {MAX_COST:,}"))
    elif cost is None or cost <= 0 or to_cents(cost) <= 0:
        errors.append(FieldError("estimated_cost", "Estimated cost must be greater than 0"))
    hours = to_decimal(estimated_hours)
    if hours is not None and hours > MAX_HOURS:
        errors.append(FieldError("estimated_hours", f"Estimated hours cannot exceed {MAX_HOURS:,}"))
    elif hours is None or hours <= 0 or to_cents(hours) <= 0:
        errors.append(FieldError("estimated_hours", "Estimated hours must be greater than 0"))
    if quote_valid_until is not None and quote_valid_until <= now:
        errors.append(FieldError("quote_valid_until", "Validity date must be in the future"))
    errors.extend(validate_breakdown(itemized_breakdown))
    return errors


# --- Work orders ---

# field -> human wording used in the error message
WORK_ORDER_REQUIRED_FIELDS = {
    "job_no": "job number",
    "property_name": "property name",
    "property_address": "property address",
    "property_phone": "property phone",
    "description": "description",
}


def validate_work_order(fields: dict) -> List[FieldError]:
    errors = []
    for field, label in WORK_ORDER_REQUIRED_FIELDS.items():
        if _blank(fields.get(field)):
            errors.append(FieldError(field, f"{label[0].upper()}{label[1:]} is required"))
    email = fields.get("authorized_email")
    if not _blank(email) and not is_valid_email(email):
        errors.append(FieldError("authorized_email", "Valid email is required"))
    return errors


def missing_fields_message(errors: List[FieldError]) -> str:
    labels = [WORK_ORDER_REQUIRED_FIELDS.get(e.field, e.field) for e in errors]
    return f"Missing or invalid fields: {', '.join(labels)}"


# --- Clients ---

def validate_client(fields: dict, creating: bool = True) -> List[FieldError]:
    errors = []
    if creating or "name" in fields:
        if _blank(fields.get("name")):
            errors.append(FieldError("name", "Name is required"))
    if creating:
        code = fields.get("code")
        if _blank(code):
            errors.append(FieldError("code", "Code is required"))
        elif not is_valid_client_code(code.strip().upper()):
            errors.append(FieldError(
                "code", "Code may only contain uppercase letters, digits, underscores and hyphens",
            ))
    email = fields.get("primary_contact_email")
    if not _blank(email) and not is_valid_email(email):
        errors.append(FieldError("primary_contact_email", "Valid email is required"))
    return errors

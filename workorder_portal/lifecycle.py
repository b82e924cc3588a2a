"""
Quote lifecycle: the table of allowed status transitions and who may trigger them.

    Draft ──submit──▶ Submitted ──request_info──▶ Information Requested
                          │                                │
                          └──────────provide_quote─────────┘
                                         ▼
                                      Quoted ──approve──▶ Approved ──convert──▶ Converted
                                         │
                                         └──decline──▶ Declined

Any non-terminal quote whose ``quote_valid_until`` has passed may be moved to
Expired by the system sweep. Declined, Expired and Converted are terminal.

This module is pure: it decides, it never touches the database. Routers call
``check_transition`` before mutating anything, so a rejected action leaves
the quote exactly as it was.
"""

import enum
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from .errors import Forbidden, TransitionRejected
from .models import MessageType, QuoteStatus, Role


class QuoteAction(str, enum.Enum):
    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    REQUEST_INFO = "request_info"
    PROVIDE_QUOTE = "provide_quote"
    APPROVE = "approve"
    DECLINE = "decline"
    CONVERT = "convert"
    EXPIRE = "expire"


SYSTEM_ROLE = "system"

TERMINAL_STATUSES = frozenset({
    QuoteStatus.DECLINED.value,
    QuoteStatus.EXPIRED.value,
    QuoteStatus.CONVERTED.value,
})

_CLIENT_APPROVERS = (Role.CLIENT_ADMIN.value, Role.ADMIN.value)
_STAFF = (Role.STAFF.value, Role.ADMIN.value)

# (from_status, action) -> (to_status, roles allowed to trigger it)
TRANSITIONS: Dict[Tuple[str, str], Tuple[str, Tuple[str, ...]]] = {
    (QuoteStatus.DRAFT.value, QuoteAction.SAVE_DRAFT.value): (QuoteStatus.DRAFT.value, _CLIENT_APPROVERS),
    (QuoteStatus.DRAFT.value, QuoteAction.SUBMIT.value): (QuoteStatus.SUBMITTED.value, _CLIENT_APPROVERS),
    (QuoteStatus.SUBMITTED.value, QuoteAction.REQUEST_INFO.value): (
        QuoteStatus.INFORMATION_REQUESTED.value, _STAFF,
    ),
    (QuoteStatus.SUBMITTED.value, QuoteAction.PROVIDE_QUOTE.value): (QuoteStatus.QUOTED.value, _STAFF),
    (QuoteStatus.INFORMATION_REQUESTED.value, QuoteAction.PROVIDE_QUOTE.value): (
        QuoteStatus.QUOTED.value, _STAFF,
    ),
    (QuoteStatus.QUOTED.value, QuoteAction.APPROVE.value): (QuoteStatus.APPROVED.value, _CLIENT_APPROVERS),
    (QuoteStatus.QUOTED.value, QuoteAction.DECLINE.value): (QuoteStatus.DECLINED.value, _CLIENT_APPROVERS),
    (QuoteStatus.APPROVED.value, QuoteAction.CONVERT.value): (QuoteStatus.CONVERTED.value, _STAFF),
}

# Audit message written alongside each transition
TRANSITION_MESSAGE_TYPES = {
    QuoteAction.SUBMIT.value: MessageType.STATUS_CHANGE.value,
    QuoteAction.REQUEST_INFO.value: MessageType.INFO_REQUESTED.value,
    QuoteAction.PROVIDE_QUOTE.value: MessageType.QUOTE_PROVIDED.value,
    QuoteAction.APPROVE.value: MessageType.APPROVED.value,
    QuoteAction.DECLINE.value: MessageType.DECLINED_BY_CLIENT.value,
    QuoteAction.CONVERT.value: MessageType.CONVERTED.value,
    QuoteAction.EXPIRE.value: MessageType.EXPIRED.value,
}


def _value(v) -> str:
    return v.value if isinstance(v, enum.Enum) else v


def is_terminal(status) -> bool:
    return _value(status) in TERMINAL_STATUSES


def is_expired(quote, now: Optional[datetime] = None) -> bool:
    """True when the quote carries a validity date that has already passed."""
    if quote.quote_valid_until is None:
        return False
    now = now or datetime.utcnow()
    return quote.quote_valid_until < now


def _lookup(status: str, action: str) -> Optional[Tuple[str, Tuple[str, ...]]]:
    if action == QuoteAction.EXPIRE.value:
        if status in TERMINAL_STATUSES:
            return None
        return QuoteStatus.EXPIRED.value, (SYSTEM_ROLE,)
    return TRANSITIONS.get((status, action))


def check_transition(status, action, role) -> str:
    """
    Validate that ``role`` may perform ``action`` on a quote in ``status``.

    Returns the status the quote moves to. Raises TransitionRejected when the
    action is not available from the current status (terminal states reject
    everything), and Forbidden when the status allows the action but the role
    does not.
    """
    status, action, role = _value(status), _value(action), _value(role)

    if status in TERMINAL_STATUSES:
        raise TransitionRejected(
            f"Quote is {status}; no further changes are allowed.",
            details={"status": status, "action": action},
        )

    entry = _lookup(status, action)
    if entry is None:
        raise TransitionRejected(
            f"Cannot {action.replace('_', ' ')} a quote with status '{status}'.",
            details={"status": status, "action": action},
        )

    to_status, roles = entry
    if role not in roles:
        raise Forbidden(
            f"Role '{role}' is not permitted to {action.replace('_', ' ')} this quote.",
            details={"status": status, "action": action, "allowed_roles": list(roles)},
        )
    return to_status


def allowed_actions(status, role) -> List[str]:
    """Actions ``role`` could take right now, in table order."""
    status, role = _value(status), _value(role)
    if status in TERMINAL_STATUSES:
        return []
    return [
        action for (from_status, action), (_, roles) in TRANSITIONS.items()
        if from_status == status and role in roles
    ]


def can_transition(status, action, role) -> bool:
    try:
        check_transition(status, action, role)
    except (TransitionRejected, Forbidden):
        return False
    return True

from .admin import AdminClient, AlertClient
from .breakdown import BreakdownDraft
from .optimistic import OptimisticToggle
from .polling import AlertPoller
from .quotes import QuoteClient
from .session import ApiError, PortalSession
from .work_orders import WorkOrderClient

__all__ = [
    "AdminClient",
    "AlertClient",
    "AlertPoller",
    "ApiError",
    "BreakdownDraft",
    "OptimisticToggle",
    "PortalSession",
    "QuoteClient",
    "WorkOrderClient",
]

"""
PlateMyDay - Client SDK.

Async HTTP client plus the browser-side state the web app keeps: the
committed/partial meal plan and the auto-refreshing shopping list.
"""

from platemyday.client.api import PlateMyDayClient, error_from_response
from platemyday.client.session import PlanSession
from platemyday.client.settings import ClientSettings
from platemyday.client.shopping import ShoppingListWatcher

__all__ = [
    "ClientSettings",
    "PlanSession",
    "PlateMyDayClient",
    "ShoppingListWatcher",
    "error_from_response",
]

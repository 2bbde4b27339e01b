"""
PlateMyDay - Planning.

Turns finished generations into week plans and shopping lists.
"""

from platemyday.planning.reconciler import (
    build_week_plan,
    compute_week_start_date,
    promote_to_library,
    relink_slots,
)
from platemyday.planning.shopping import collect_ingredients, stream_shopping_list

__all__ = [
    "build_week_plan",
    "collect_ingredients",
    "compute_week_start_date",
    "promote_to_library",
    "relink_slots",
    "stream_shopping_list",
]

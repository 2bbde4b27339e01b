"""
PlateMyDay - Billing.

- credits: the credit ledger (check, consume, billing snapshot)
- overrides: admin unlimited / extra-credit grants
- stripe_billing: checkout, portal and webhook handling
"""

from platemyday.billing.credits import check_credits, consume_credit, get_billing_info
from platemyday.billing.overrides import upsert_override

__all__ = [
    "check_credits",
    "consume_credit",
    "get_billing_info",
    "upsert_override",
]

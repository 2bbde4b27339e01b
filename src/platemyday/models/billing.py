"""Credit and billing snapshots."""

from platemyday.constants import PlanId
from platemyday.models.base import CamelModel


class CreditCheck(CamelModel):
    """Result of a side-effect-free credit check."""

    allowed: bool
    unlimited: bool
    credits_used: int
    credits_limit: int
    remaining: int | None


class CreditBalance(CamelModel):
    credits_used: int
    credits_limit: int


class BillingInfo(CamelModel):
    plan: PlanId = "free"
    unlimited: bool = False
    credits_used: int = 0
    credits_limit: int = 10
    credits_remaining: int | None = 10

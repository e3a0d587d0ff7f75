# omnisale/errors.py
from typing import Optional


class OmniSaleError(Exception):
    """Base class for errors raised by the orchestration core."""


class CustomerNotFound(OmniSaleError):
    def __init__(self, customer_id: str):
        super().__init__(f"customer {customer_id!r} not found")
        self.customer_id = customer_id
        self.user_message = (
            "We couldn't find your profile. Please sign in again or contact support."
        )


class ClassificationUnavailable(OmniSaleError):
    """The remote intent classifier could not produce a plan."""


class WorkerUnavailable(OmniSaleError):
    def __init__(self, capability: str, reason: str = ""):
        super().__init__(f"{capability} unavailable: {reason}" if reason else f"{capability} unavailable")
        self.capability = capability
        self.reason = reason


class PersistenceFailure(OmniSaleError):
    def __init__(self, what: str, reason: str = ""):
        super().__init__(f"failed to persist {what}: {reason}" if reason else f"failed to persist {what}")
        self.what = what
        self.reason = reason


class SagaInconsistency(OmniSaleError):
    """Payment went through but the order could not be written.

    Money has moved and no order exists. Nothing in the core retries or
    refunds; the condition is escalated instead.
    """

    def __init__(self, customer_id: str, transaction_id: Optional[str], amount: float, reason: str = ""):
        super().__init__(
            f"payment {transaction_id} of {amount:.2f} for customer {customer_id} "
            f"succeeded but order persistence failed: {reason}"
        )
        self.customer_id = customer_id
        self.transaction_id = transaction_id
        self.amount = amount
        self.reason = reason

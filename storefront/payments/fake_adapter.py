"""Configurable fake gateway for development and tests."""

from typing import List
from uuid import uuid4

from storefront.payments.port import PaymentGateway, PaymentIntentResult


class FakeGateway(PaymentGateway):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: List[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    async def create_payment_intent(self, amount_cents: int, currency: str) -> PaymentIntentResult:
        self.calls.append({"method": "create_payment_intent", "amount_cents": amount_cents, "currency": currency})
        if not self.should_succeed:
            return PaymentIntentResult(success=False, failure_reason=self.failure_reason)
        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        return PaymentIntentResult(
            success=True,
            intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
        )

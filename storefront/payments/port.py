"""Payment gateway port.

The storefront only creates payment intents; the charge itself is confirmed
client-side against the gateway with the returned client secret.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PaymentIntentResult:
    success: bool
    intent_id: Optional[str] = None
    client_secret: Optional[str] = None
    failure_reason: Optional[str] = None


class PaymentGateway(ABC):
    @abstractmethod
    async def create_payment_intent(self, amount_cents: int, currency: str) -> PaymentIntentResult:
        """Create a payment intent for ``amount_cents`` in ``currency``."""
        ...

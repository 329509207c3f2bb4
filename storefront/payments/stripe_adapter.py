import logging
from typing import Optional

import httpx

from storefront.payments.port import PaymentGateway, PaymentIntentResult

logger = logging.getLogger("storefront.payments")


class StripeGateway(PaymentGateway):
    """Stripe REST adapter (form-encoded requests, secret key as basic auth user)."""

    def __init__(self, secret_key: str, api_base: str = "https://api.stripe.com", timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def create_payment_intent(self, amount_cents: int, currency: str) -> PaymentIntentResult:
        data = {
            "amount": amount_cents,
            "currency": currency,
            "payment_method_types[]": "card",
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.api_base}/v1/payment_intents",
                    data=data,
                    auth=(self.secret_key, ""),
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error("Stripe payment intent rejected", extra={"status_code": exc.response.status_code})
                return PaymentIntentResult(success=False, failure_reason=self._error_message(exc.response))
            except httpx.RequestError as exc:
                logger.error("Stripe unreachable: %s", exc)
                return PaymentIntentResult(success=False, failure_reason="Payment gateway unavailable")

        body = response.json()
        return PaymentIntentResult(
            success=True,
            intent_id=body.get("id"),
            client_secret=body.get("client_secret"),
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"Gateway returned {response.status_code}"

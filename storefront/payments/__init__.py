from shared.utils import Settings
from storefront.payments.fake_adapter import FakeGateway
from storefront.payments.port import PaymentGateway, PaymentIntentResult
from storefront.payments.stripe_adapter import StripeGateway


def build_gateway(settings: Settings) -> PaymentGateway:
    """Stripe when a secret key is configured, otherwise the fake gateway."""
    if settings.STRIPE_SECRET_KEY:
        return StripeGateway(settings.STRIPE_SECRET_KEY, api_base=settings.STRIPE_API_BASE)
    return FakeGateway()


__all__ = ["PaymentGateway", "PaymentIntentResult", "FakeGateway", "StripeGateway", "build_gateway"]

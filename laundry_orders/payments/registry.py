import logging
from typing import Dict, List

from laundry_orders.config import Settings
from laundry_orders.payments.base import PaymentProvider
from laundry_orders.payments.placeholder import UnavailableProvider
from laundry_orders.payments.stripe_provider import StripeProvider

logger = logging.getLogger("payments")


def build_providers(settings: Settings) -> Dict[str, PaymentProvider]:
    stripe_provider = StripeProvider(settings.stripe_secret_key, settings.stripe_webhook_secret)
    if not settings.stripe_secret_key:
        logger.warning("[Payments] STRIPE_SECRET_KEY not set, checkout sessions will fail")
    if not settings.stripe_webhook_secret:
        logger.warning("[Payments] STRIPE_WEBHOOK_SECRET not set, webhooks will be rejected")

    providers: List[PaymentProvider] = [stripe_provider, UnavailableProvider("rozo", "Rozo")]
    return {p.provider_id: p for p in providers}


def active_providers(providers: Dict[str, PaymentProvider]) -> List[PaymentProvider]:
    return [p for p in providers.values() if p.is_active]

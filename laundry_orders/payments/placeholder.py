from typing import Optional

from laundry_orders.errors import ProviderUnavailable
from laundry_orders.payments.base import (
    CheckoutRequest,
    CheckoutSession,
    PaymentEvent,
    PaymentProvider,
    PaymentStatusResult,
    RefundResult,
)


class UnavailableProvider(PaymentProvider):
    """A provider that is listed but not live yet. Every capability reports unavailable."""

    is_active = False

    def __init__(self, provider_id: str, name: str, message: Optional[str] = None):
        self.provider_id = provider_id
        self.name = name
        self.message = message or f"{name} payments are coming soon!"

    def _unavailable(self):
        raise ProviderUnavailable(self.message)

    def create_session(self, request: CheckoutRequest) -> CheckoutSession:
        self._unavailable()

    def verify_and_parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        self._unavailable()

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        self._unavailable()

    def issue_refund(self, payment_id: str, amount: Optional[float] = None,
                     reason: Optional[str] = None) -> RefundResult:
        self._unavailable()

    def check_status(self, payment_id: str) -> PaymentStatusResult:
        self._unavailable()

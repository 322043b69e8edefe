import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import stripe

from laundry_orders.errors import ConfigurationError, SignatureVerificationFailed, UpstreamProviderError
from laundry_orders.payments.base import (
    CheckoutRequest,
    CheckoutSession,
    PaymentEvent,
    PaymentProvider,
    PaymentStatusResult,
    RefundResult,
)

logger = logging.getLogger("payments")


def to_cents(amount: Any) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _as_dict(obj: Any) -> Dict[str, Any]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    for attr in ("to_dict_recursive", "to_dict"):
        convert = getattr(obj, attr, None)
        if callable(convert):
            return convert()
    return dict(obj)


def session_from_object(obj: Any) -> CheckoutSession:
    """Map a Stripe checkout session (API object or webhook JSON) onto CheckoutSession."""
    data = _as_dict(obj)
    details = _as_dict(data.get("customer_details"))
    intent = data.get("payment_intent")
    if isinstance(intent, dict):
        intent = intent.get("id")
    amount_total = data.get("amount_total")
    return CheckoutSession(
        id=data.get("id", ""),
        url=data.get("url"),
        amount_total=float(Decimal(amount_total) / 100) if amount_total is not None else None,
        customer_name=details.get("name"),
        customer_email=details.get("email") or data.get("customer_email"),
        payment_intent=intent,
        metadata=dict(_as_dict(data.get("metadata"))),
    )


class StripeProvider(PaymentProvider):
    provider_id = "stripe"
    name = "Stripe"

    def __init__(self, secret_key: Optional[str], webhook_secret: Optional[str] = None,
                 tolerance: int = stripe.Webhook.DEFAULT_TOLERANCE):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    @property
    def is_active(self) -> bool:
        return bool(self.secret_key)

    def _require_key(self) -> str:
        if not self.secret_key:
            raise ConfigurationError("Stripe secret key not configured")
        return self.secret_key

    def create_session(self, request: CheckoutRequest) -> CheckoutSession:
        api_key = self._require_key()
        product_data = {"name": request.product_name}
        if request.description:
            product_data["description"] = request.description
        params: Dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [{
                "price_data": {
                    "currency": request.currency,
                    "product_data": product_data,
                    "unit_amount": to_cents(request.amount),
                },
                "quantity": 1,
            }],
            "mode": "payment",
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": {k: str(v) for k, v in request.metadata.items() if v is not None},
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email

        try:
            session = stripe.checkout.Session.create(api_key=api_key, **params)
        except stripe.StripeError as e:
            logger.error(f"[Stripe] checkout session creation failed: {e}")
            raise UpstreamProviderError("Failed to create checkout session", details=str(e))

        checkout = session_from_object(session)
        logger.info(f"[Stripe] created checkout session {checkout.id}")
        return checkout

    def verify_and_parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        if not self.webhook_secret:
            raise ConfigurationError("Webhook secret not configured")
        if not signature:
            raise SignatureVerificationFailed("Missing Stripe-Signature header")
        try:
            text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        except UnicodeDecodeError:
            raise SignatureVerificationFailed("Webhook payload is not valid UTF-8")

        try:
            stripe.WebhookSignature.verify_header(text, signature, self.webhook_secret, self.tolerance)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"[Stripe] webhook signature verification failed: {e}")
            raise SignatureVerificationFailed()

        try:
            body = json.loads(text)
        except ValueError:
            raise SignatureVerificationFailed("Webhook payload is not valid JSON")
        if not isinstance(body, dict):
            raise SignatureVerificationFailed("Webhook payload is not an event object")

        event_type = body.get("type") or ""
        obj = (body.get("data") or {}).get("object") or {}
        return PaymentEvent(
            id=body.get("id") or "",
            type=event_type,
            data=obj,
            session=session_from_object(obj) if event_type.startswith("checkout.session.") else None,
        )

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        api_key = self._require_key()
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=api_key)
        except stripe.StripeError as e:
            logger.error(f"[Stripe] could not retrieve session {session_id}: {e}")
            raise UpstreamProviderError("Failed to retrieve checkout session", details=str(e))
        return session_from_object(session)

    def issue_refund(self, payment_id: str, amount: Optional[float] = None,
                     reason: Optional[str] = None) -> RefundResult:
        api_key = self._require_key()
        params: Dict[str, Any] = {"payment_intent": payment_id}
        if amount is not None:
            params["amount"] = to_cents(amount)
        if reason:
            params["metadata"] = {"reason": reason}
        try:
            refund = stripe.Refund.create(api_key=api_key, **params)
        except stripe.StripeError as e:
            logger.error(f"[Stripe] refund for {payment_id} failed: {e}")
            raise UpstreamProviderError("Failed to process refund", details=str(e))
        refund_id = _as_dict(refund).get("id")
        logger.info(f"[Stripe] refund {refund_id} issued for {payment_id}")
        return RefundResult(success=True, refund_id=refund_id)

    def check_status(self, payment_id: str) -> PaymentStatusResult:
        api_key = self._require_key()
        try:
            intent = _as_dict(stripe.PaymentIntent.retrieve(payment_id, api_key=api_key))
        except stripe.StripeError as e:
            logger.error(f"[Stripe] status lookup for {payment_id} failed: {e}")
            raise UpstreamProviderError("Failed to fetch payment status", details=str(e))
        return PaymentStatusResult(
            status=intent.get("status", "unknown"),
            details={"amount": intent.get("amount"), "currency": intent.get("currency")},
        )

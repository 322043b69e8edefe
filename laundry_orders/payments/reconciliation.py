import logging
import threading
from typing import Any, Dict, Optional

from laundry_orders.errors import OrderSystemError, WebhookProcessingError
from laundry_orders.payments.base import CheckoutSession, PaymentEvent, PaymentProvider
from laundry_orders.services.order_service import OrderService
from laundry_orders.types.order_types import Order, isoformat, utcnow

logger = logging.getLogger("reconcile")

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class PaymentReconciler:
    """
    Applies payment provider notifications to the order store.

    Providers deliver at least once and in any order. An event is matched to an
    order by the `orderReference` the checkout was created with, then by
    checkout session id; unmatched completions synthesize a new order. Event ids
    that were fully processed are recorded so redeliveries are acknowledged
    without touching any order.
    """

    def __init__(self, provider: PaymentProvider, orders: OrderService):
        self.provider = provider
        self.orders = orders
        self.store = orders.store
        # one event at a time from the ledger check to the ledger write
        self._lock = threading.Lock()

    def handle(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        # raises before anything is mutated
        event = self.provider.verify_and_parse_event(payload, signature)
        logger.info(f"[Webhook] received {event.type} ({event.id or 'no id'})")

        with self._lock:
            return self._process(event)

    def _process(self, event: PaymentEvent) -> Dict[str, Any]:
        if event.id and self.store.has_processed_event(event.id):
            logger.info(f"[Webhook] {event.id} already processed, acknowledging redelivery")
            return {"received": True, "duplicate": True}

        try:
            order = self.dispatch(event)
        except OrderSystemError as e:
            logger.error(f"[Webhook] processing {event.type} ({event.id}) failed: {e.message}")
            raise WebhookProcessingError()
        except Exception:
            logger.exception(f"[Webhook] processing {event.type} ({event.id}) failed")
            raise WebhookProcessingError()

        if event.id:
            self.store.record_processed_event(event.id, event.type, order.id if order else None)
        return {"received": True}

    def dispatch(self, event: PaymentEvent) -> Optional[Order]:
        if event.type == CHECKOUT_COMPLETED:
            return self.reconcile_checkout(event.session or CheckoutSession(id=event.data.get("id", "")))
        if event.type == PAYMENT_SUCCEEDED:
            logger.info(f"[Webhook] PaymentIntent succeeded: {event.data.get('id')}")
        elif event.type == PAYMENT_FAILED:
            logger.warning(f"[Webhook] PaymentIntent failed: {event.data.get('id')}")
        else:
            logger.info(f"[Webhook] unhandled event type: {event.type}")
        return None

    def reconcile_checkout(self, session: CheckoutSession) -> Order:
        if session.amount_total is None and session.id:
            session = self.provider.retrieve_session(session.id)

        payment_metadata = {
            "checkoutSessionId": session.id or None,
            "paymentIntentId": session.payment_intent,
            "customerEmail": session.customer_email,
            "paymentStatus": "paid",
            "paidAt": isoformat(utcnow()),
        }

        existing = self._match(session)
        if existing is not None:
            # status is left alone: a paid order stays Pending, and a later stage is never reverted
            order = self.store.update(existing.id, {"metadata": payment_metadata})
            logger.info(f"[Webhook] order {order.id} confirmed by checkout {session.id}")
            return order

        order = self.orders.create_order({
            "name": session.customer_name or "Guest",
            "room": session.metadata.get("room") or "Not specified",
            "service": session.metadata.get("service"),
            "totalAmount": session.amount_total or 0,
            "paymentMethod": self.provider.provider_id,
            "metadata": payment_metadata,
        })
        logger.info(f"[Webhook] new order {order.id} created from checkout {session.id}")
        return order

    def _match(self, session: CheckoutSession) -> Optional[Order]:
        reference = session.metadata.get("orderReference")
        if reference:
            order = self.store.find_by_id(reference)
            if order is not None:
                return order
            logger.info(f"[Webhook] order reference {reference} not found")
        if session.id:
            return self.store.find_by_metadata("checkoutSessionId", session.id)
        return None

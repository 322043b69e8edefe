import hashlib
import hmac
import json
import time

import pytest
from fastapi.testclient import TestClient

from laundry_orders.config import Settings
from laundry_orders.db.store import OrderStore
from laundry_orders.errors import UpstreamProviderError
from laundry_orders.main import create_app
from laundry_orders.payments.base import CheckoutSession, PaymentStatusResult, RefundResult
from laundry_orders.payments.placeholder import UnavailableProvider
from laundry_orders.payments.reconciliation import PaymentReconciler
from laundry_orders.payments.stripe_provider import StripeProvider
from laundry_orders.services.order_service import OrderService

WEBHOOK_SECRET = "whsec_test_secret"


class FakeStripeProvider(StripeProvider):
    """Real webhook signature checks, canned responses for everything that would hit the network."""

    def __init__(self, webhook_secret=WEBHOOK_SECRET):
        super().__init__("sk_test_fake", webhook_secret)
        self.sessions = {}
        self.created = []
        self.refunds = []

    def create_session(self, request):
        session_id = f"cs_test_{len(self.created) + 1}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.stripe.test/pay/{session_id}",
            amount_total=request.amount,
            customer_email=request.customer_email,
            metadata={k: v for k, v in request.metadata.items() if v is not None},
        )
        self.created.append(request)
        self.sessions[session_id] = session
        return session

    def retrieve_session(self, session_id):
        if session_id not in self.sessions:
            raise UpstreamProviderError("Failed to retrieve checkout session", details=f"No such session: {session_id}")
        return self.sessions[session_id]

    def issue_refund(self, payment_id, amount=None, reason=None):
        self.refunds.append((payment_id, amount, reason))
        return RefundResult(success=True, refund_id=f"re_{payment_id}")

    def check_status(self, payment_id):
        return PaymentStatusResult(status="succeeded", details={"amount": 2800, "currency": "usd"})


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256)
    return f"t={timestamp},v1={digest.hexdigest()}"


def checkout_completed(event_id, session_id="cs_live_1", reference=None, amount_total=2800,
                       name="Jane Doe", email="jane@example.com", room="12B", payment_intent="pi_123"):
    metadata = {"room": room, "service": "Wash & Fold"}
    if reference:
        metadata["orderReference"] = reference
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": session_id,
            "object": "checkout.session",
            "amount_total": amount_total,
            "payment_intent": payment_intent,
            "customer_details": {"name": name, "email": email},
            "metadata": metadata,
        }},
    })


@pytest.fixture
def sign_payload():
    return sign


@pytest.fixture
def make_checkout_event():
    return checkout_completed


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / "data"),
        stripe_secret_key="sk_test_fake",
        stripe_webhook_secret=WEBHOOK_SECRET,
        allowed_origins=["http://localhost:5173"],
    )


@pytest.fixture
def store(settings):
    return OrderStore(settings.resolved_database_url)


@pytest.fixture
def service(store):
    return OrderService(store, royalty_rate=0.10)


@pytest.fixture
def provider():
    return FakeStripeProvider()


@pytest.fixture
def reconciler(provider, service):
    return PaymentReconciler(provider, service)


@pytest.fixture
def app(settings, store, provider):
    providers = {"stripe": provider, "rozo": UnavailableProvider("rozo", "Rozo")}
    return create_app(settings, store=store, providers=providers)


@pytest.fixture
def client(app):
    return TestClient(app)

import pytest
import stripe

from laundry_orders.errors import ConfigurationError, SignatureVerificationFailed, UpstreamProviderError
from laundry_orders.payments.base import CheckoutRequest
from laundry_orders.payments.stripe_provider import StripeProvider, session_from_object, to_cents

WEBHOOK_SECRET = "whsec_test_secret"


def make_request(**kwargs):
    kwargs.setdefault("amount", 28.0)
    kwargs.setdefault("description", "Laundry service for Jane (Room: 12B)")
    kwargs.setdefault("success_url", "https://yourchore.com/success")
    kwargs.setdefault("cancel_url", "https://yourchore.com/cancel")
    return CheckoutRequest(**kwargs)


@pytest.mark.parametrize("amount, cents", [(28, 2800), (19.99, 1999), ("0.015", 2), (0.1 + 0.2, 30)])
def test_to_cents(amount, cents):
    assert to_cents(amount) == cents


def test_create_session_sends_cents_and_metadata(monkeypatch):
    captured = {}

    def fake_create(**params):
        captured.update(params)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.com/pay/cs_test_1", "amount_total": 1999,
                "metadata": params["metadata"]}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    provider = StripeProvider("sk_test_123", WEBHOOK_SECRET)

    session = provider.create_session(make_request(
        amount=19.99, customer_email="jane@example.com",
        metadata={"orderReference": "ref-1", "room": None},
    ))

    assert session.id == "cs_test_1"
    assert session.amount_total == 19.99
    assert captured["api_key"] == "sk_test_123"
    assert captured["mode"] == "payment"
    assert captured["customer_email"] == "jane@example.com"
    assert captured["metadata"] == {"orderReference": "ref-1"}
    line_item = captured["line_items"][0]
    assert line_item["price_data"]["unit_amount"] == 1999
    assert line_item["price_data"]["currency"] == "usd"


def test_stripe_error_becomes_upstream_error(monkeypatch):
    def fail(**params):
        raise stripe.StripeError("card network down")

    monkeypatch.setattr(stripe.checkout.Session, "create", fail)
    provider = StripeProvider("sk_test_123", WEBHOOK_SECRET)

    with pytest.raises(UpstreamProviderError) as exc:
        provider.create_session(make_request())
    assert exc.value.message == "Failed to create checkout session"
    assert "card network down" in exc.value.details


def test_missing_secret_key():
    provider = StripeProvider(None, WEBHOOK_SECRET)
    assert not provider.is_active
    with pytest.raises(ConfigurationError):
        provider.create_session(make_request())


def test_refund_converts_amount(monkeypatch):
    captured = {}

    def fake_refund(**params):
        captured.update(params)
        return {"id": "re_1"}

    monkeypatch.setattr(stripe.Refund, "create", fake_refund)
    result = StripeProvider("sk_test_123").issue_refund("pi_1", 12.5, "damaged item")

    assert result.success and result.refund_id == "re_1"
    assert captured["amount"] == 1250
    assert captured["payment_intent"] == "pi_1"
    assert captured["metadata"] == {"reason": "damaged item"}


def test_verify_parses_checkout_event(sign_payload, make_checkout_event):
    payload = make_checkout_event("evt_1", reference="ref-1")
    event = StripeProvider("sk_test_123", WEBHOOK_SECRET).verify_and_parse_event(
        payload.encode("utf-8"), sign_payload(payload))

    assert event.id == "evt_1"
    assert event.type == "checkout.session.completed"
    assert event.session.amount_total == 28.0
    assert event.session.metadata["orderReference"] == "ref-1"
    assert event.session.customer_email == "jane@example.com"


@pytest.mark.parametrize("payload", [b"\xff\xfe", b"[1, 2]", b"not json"])
def test_verify_rejects_garbage(sign_payload, payload):
    provider = StripeProvider("sk_test_123", WEBHOOK_SECRET)
    try:
        signature = sign_payload(payload.decode("utf-8"))
    except UnicodeDecodeError:
        signature = "t=1,v1=abc"
    with pytest.raises(SignatureVerificationFailed):
        provider.verify_and_parse_event(payload, signature)


def test_session_from_object_handles_expanded_fields():
    session = session_from_object({
        "id": "cs_1",
        "amount_total": 2850,
        "payment_intent": {"id": "pi_9"},
        "customer_email": "sam@example.com",
        "customer_details": None,
        "metadata": None,
    })

    assert session.amount_total == 28.5
    assert session.payment_intent == "pi_9"
    assert session.customer_email == "sam@example.com"
    assert session.customer_name is None
    assert session.metadata == {}

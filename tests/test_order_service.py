import pytest

from laundry_orders.errors import InvalidStatusTransition, OrderNotFound, ValidationError
from laundry_orders.services.order_service import OrderService
from laundry_orders.types.order_types import DEFAULT_SERVICE, OrderStatus


@pytest.mark.parametrize("amount, rate, expected", [
    (28, 0.10, 2.80),
    (28, 0.15, 4.20),
    (19.99, 0.15, 3.00),
    (0, 0.10, 0.0),
    (33.33, 0.10, 3.33),
])
def test_royalty_is_rate_times_amount(store, amount, rate, expected):
    service = OrderService(store, royalty_rate=rate)
    order = service.create_order({"totalAmount": amount})
    assert order.royalty_fee == pytest.approx(expected, abs=0.005)


def test_explicit_royalty_is_kept(service):
    order = service.create_order({"totalAmount": 28, "royaltyFee": 5})
    assert order.royalty_fee == 5.0


def test_royalty_not_recomputed_on_update(service, store):
    order = service.create_order({"totalAmount": 28})
    updated = store.update(order.id, {"total_amount": 40.0})
    assert updated.royalty_fee == 2.8


def test_defaults_filled_in(service):
    order = service.create_order({"basePrice": 28})

    assert order.id.startswith("order-")
    assert order.customer_name == "Unknown"
    assert order.room == "Unknown"
    assert order.service == DEFAULT_SERVICE
    assert order.status == OrderStatus.PENDING
    assert order.payment_method == "cash"
    assert order.total_amount == 28.0
    assert order.amount_paid == 28.0
    assert order.tip_amount == 0.0
    assert order.time is not None
    assert order.updated_at >= order.created_at


def test_order_reference_becomes_id(service):
    order = service.create_order({
        "orderReference": "ref-42", "name": "Jane", "room": "12B", "totalAmount": 28,
        "paymentMethod": "stripe", "email": "jane@example.com",
    })
    assert order.id == "ref-42"
    assert order.payment_method == "stripe"
    assert order.metadata["customerEmail"] == "jane@example.com"


def test_amount_required(service, store):
    with pytest.raises(ValidationError, match="amount required"):
        service.create_order({"name": "Jane"})
    assert store.find_all() == []


@pytest.mark.parametrize("amount", [-1, "lots"])
def test_bad_amount_rejected(service, amount):
    with pytest.raises(ValidationError):
        service.create_order({"totalAmount": amount})


def test_bogus_status_rejected_before_store(service, store, monkeypatch):
    order = service.create_order({"totalAmount": 28})

    def fail(*args, **kwargs):
        raise AssertionError("store should not be touched")

    monkeypatch.setattr(store, "update_status", fail)
    with pytest.raises(ValidationError):
        service.update_order_status(order.id, "Bogus")


def test_unknown_order_leaves_store_unchanged(service, store):
    service.create_order({"totalAmount": 28, "orderReference": "ref-1"})
    before = store.find_all()

    with pytest.raises(OrderNotFound):
        service.update_order_status("missing", "Delivered")
    assert store.find_all() == before


def test_forward_transitions(service):
    order = service.create_order({"totalAmount": 28})

    picked = service.update_order_status(order.id, "Picked Up")
    delivered = service.update_order_status(order.id, "Delivered")

    assert picked.status == OrderStatus.PICKED_UP
    assert delivered.status == OrderStatus.DELIVERED
    assert delivered.updated_at > picked.updated_at


def test_pickedup_alias_accepted(service):
    order = service.create_order({"totalAmount": 28})
    assert service.update_order_status(order.id, "PickedUp").status == OrderStatus.PICKED_UP


def test_backwards_transition_rejected(service, store):
    order = service.create_order({"totalAmount": 28})
    service.update_order_status(order.id, "Delivered")

    with pytest.raises(InvalidStatusTransition):
        service.update_order_status(order.id, "Pending")
    assert store.find_by_id(order.id).status == OrderStatus.DELIVERED


def test_same_status_is_accepted(service):
    order = service.create_order({"totalAmount": 28})
    again = service.update_order_status(order.id, "Pending")
    assert again.status == OrderStatus.PENDING
    assert again.updated_at > order.updated_at


def test_record_checkout_started(service):
    order = service.create_order({"totalAmount": 28, "orderReference": "ref-7"})

    updated = service.record_checkout_started("ref-7", "cs_test_9")

    assert updated.metadata["checkoutSessionId"] == "cs_test_9"
    assert updated.metadata["checkoutInitiated"] is True
    assert updated.created_at == order.created_at
    assert service.record_checkout_started("unknown", "cs_test_10") is None
    assert service.record_checkout_started(None, "cs_test_11") is None

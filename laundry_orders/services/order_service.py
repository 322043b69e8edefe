import logging
import uuid
from typing import Any, Dict, List, Optional

from laundry_orders.db.store import OrderStore
from laundry_orders.errors import InvalidStatusTransition, OrderNotFound, ValidationError
from laundry_orders.types.order_types import (
    DEFAULT_SERVICE,
    STATUS_FLOW,
    UNKNOWN,
    Order,
    OrderStatus,
    merge_metadata,
    money,
    royalty_for,
    utcnow,
    isoformat,
)

logger = logging.getLogger("orders")

VALID_STATUSES = ", ".join(s.value for s in STATUS_FLOW)


def generate_order_id() -> str:
    return f"order-{uuid.uuid4().hex}"


def _first_present(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _money(value: Any, field_name: str) -> float:
    try:
        return money(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be a non-negative amount")


class OrderService:
    """Builds order records from request payloads and guards the status lifecycle."""

    def __init__(self, store: OrderStore, royalty_rate: float = 0.10):
        self.store = store
        self.royalty_rate = royalty_rate

    def create_order(self, data: Dict[str, Any]) -> Order:
        amount = _first_present(data, "totalAmount", "basePrice", "amountPaid")
        if amount is None:
            raise ValidationError("amount required")

        total_amount = _money(amount, "totalAmount")
        paid = data.get("amountPaid")
        amount_paid = _money(paid, "amountPaid") if paid is not None else total_amount
        tip_amount = _money(data.get("tipAmount") or 0, "tipAmount")
        royalty = data.get("royaltyFee")
        if royalty is not None:
            royalty_fee = _money(royalty, "royaltyFee")
        else:
            royalty_fee = royalty_for(total_amount, self.royalty_rate)

        now = utcnow()
        order = Order(
            id=str(_first_present(data, "orderReference", "id") or generate_order_id()),
            customer_name=data.get("name") or UNKNOWN,
            room=data.get("room") or UNKNOWN,
            service=data.get("service") or DEFAULT_SERVICE,
            amount_paid=amount_paid,
            tip_amount=tip_amount,
            royalty_fee=royalty_fee,
            total_amount=total_amount,
            status=OrderStatus.PENDING,
            payment_method=data.get("paymentMethod") or "cash",
            time=data.get("time") or isoformat(now),
            created_at=now,
            updated_at=now,
            metadata=merge_metadata(data.get("metadata"), {
                "customerEmail": data.get("email"),
                "serviceId": data.get("serviceId"),
            }),
        )
        stored = self.store.create(order)
        logger.info(f"[Orders] created {stored.id}: total={stored.total_amount} royalty={stored.royalty_fee}")
        return stored

    def get_orders(self) -> List[Order]:
        return self.store.find_all()

    def get_order_by_id(self, order_id: str) -> Optional[Order]:
        return self.store.find_by_id(order_id)

    def update_order_status(self, order_id: str, status: Any) -> Order:
        try:
            new_status = OrderStatus.parse(status)
        except ValueError:
            raise ValidationError(f"Invalid status. Valid values are: {VALID_STATUSES}")

        def forward_only(current: Order) -> None:
            if new_status.rank < current.status.rank:
                raise InvalidStatusTransition(
                    f"Cannot move order {order_id} from {current.status.value} back to {new_status.value}"
                )

        order = self.store.update_status(order_id, new_status, guard=forward_only)
        logger.info(f"[Orders] {order_id} is now {new_status.value}")
        return order

    def record_checkout_started(self, order_id: Optional[str], session_id: str) -> Optional[Order]:
        if not order_id:
            return None
        try:
            return self.store.update(order_id, {"metadata": {
                "checkoutSessionId": session_id,
                "checkoutInitiated": True,
                "checkoutTime": isoformat(utcnow()),
            }})
        except OrderNotFound:
            logger.info(f"[Orders] checkout started for unknown reference {order_id}")
            return None

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional

DEFAULT_SERVICE = "Laundry – 14kg Mixed Load"
UNKNOWN = "Unknown"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PICKED_UP = "Picked Up"
    DELIVERED = "Delivered"

    @property
    def rank(self) -> int:
        return STATUS_FLOW.index(self)

    @classmethod
    def parse(cls, value: Any, allow_legacy: bool = False) -> "OrderStatus":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value == value:
                    return member
            if value in STATUS_ALIASES:
                return STATUS_ALIASES[value]
            if allow_legacy and value in LEGACY_STATUSES:
                return LEGACY_STATUSES[value]
        raise ValueError(f"Invalid status: {value!r}")


STATUS_FLOW = [OrderStatus.PENDING, OrderStatus.PICKED_UP, OrderStatus.DELIVERED]
STATUS_ALIASES = {"PickedUp": OrderStatus.PICKED_UP}
# Values written by earlier deployments; only ever read, never written.
LEGACY_STATUSES = {
    "In Progress": OrderStatus.PICKED_UP,
    "Completed": OrderStatus.DELIVERED,
}


def utcnow() -> datetime:
    # naive UTC, the form SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def next_timestamp(previous: Optional[datetime]) -> datetime:
    now = utcnow()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def isoformat(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat(timespec="microseconds") + "Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def money(value: Any) -> float:
    """Round a currency amount half-up to cents. Raises ValueError on junk or negatives."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid amount: {value!r}")
    return float(amount)


def royalty_for(amount: Any, rate: float) -> float:
    return money(Decimal(str(amount)) * Decimal(str(rate)))


def merge_metadata(existing: Optional[Dict[str, Any]], incoming: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Append-only merge: keys already present keep their value, None is never written."""
    merged = dict(existing or {})
    for key, value in (incoming or {}).items():
        if value is None or key in merged:
            continue
        merged[key] = value
    return merged


# keys the old JSON store used for payment references, and their current names
LEGACY_METADATA_KEYS = {
    "stripeSessionId": "checkoutSessionId",
    "paymentIntent": "paymentIntentId",
}


def _legacy_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    metadata = dict(metadata or {})
    return merge_metadata(metadata, {new: metadata.get(old) for old, new in LEGACY_METADATA_KEYS.items()})


@dataclass
class Order:
    id: str
    total_amount: float
    customer_name: str = UNKNOWN
    room: str = UNKNOWN
    service: str = DEFAULT_SERVICE
    amount_paid: float = 0.0
    tip_amount: float = 0.0
    royalty_fee: float = 0.0
    status: OrderStatus = OrderStatus.PENDING
    payment_method: str = "cash"
    time: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def copy(self, **changes) -> "Order":
        changes.setdefault("metadata", dict(self.metadata))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.customer_name,
            "room": self.room,
            "service": self.service,
            "amountPaid": self.amount_paid,
            "tipAmount": self.tip_amount,
            "royaltyFee": self.royalty_fee,
            "totalAmount": self.total_amount,
            "status": self.status.value,
            "paymentMethod": self.payment_method,
            "time": self.time,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """Build an order from its wire form, including documents written by the old JSON store."""
        amount_paid = money(data.get("amountPaid") or 0)
        total = data.get("totalAmount")
        total_amount = money(total) if total is not None else amount_paid
        royalty = data.get("royaltyFee", data.get("royalty"))
        created_at = parse_timestamp(data.get("createdAt") or data.get("time")) or utcnow()
        updated_at = parse_timestamp(data.get("updatedAt")) or created_at
        return cls(
            id=str(data["id"]),
            customer_name=data.get("name") or UNKNOWN,
            room=data.get("room") or UNKNOWN,
            service=data.get("service") or DEFAULT_SERVICE,
            amount_paid=amount_paid,
            tip_amount=money(data.get("tipAmount") or 0),
            royalty_fee=money(royalty or 0),
            total_amount=total_amount,
            status=OrderStatus.parse(data.get("status", OrderStatus.PENDING.value), allow_legacy=True),
            payment_method=data.get("paymentMethod") or "cash",
            time=data.get("time"),
            created_at=created_at,
            updated_at=max(updated_at, created_at),
            metadata=_legacy_metadata(data.get("metadata")),
        )

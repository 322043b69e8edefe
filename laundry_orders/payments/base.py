from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class CheckoutRequest:
    amount: float
    description: str
    success_url: str
    cancel_url: str
    product_name: str = "Laundry Service"
    currency: str = "usd"
    customer_email: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class CheckoutSession:
    id: str
    url: Optional[str] = None
    amount_total: Optional[float] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    payment_intent: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentEvent:
    id: str
    type: str
    data: Dict[str, Any]
    # set for checkout completion events
    session: Optional[CheckoutSession] = None


@dataclass
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PaymentStatusResult:
    status: str
    details: Dict[str, Any] = field(default_factory=dict)


class PaymentProvider(ABC):
    """Capability set the order system needs from a hosted payment provider."""

    provider_id: str = ""
    name: str = ""
    is_active: bool = False

    @abstractmethod
    def create_session(self, request: CheckoutRequest) -> CheckoutSession:
        ...

    @abstractmethod
    def verify_and_parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        """Raise SignatureVerificationFailed unless `signature` matches the raw `payload`."""

    @abstractmethod
    def retrieve_session(self, session_id: str) -> CheckoutSession:
        ...

    @abstractmethod
    def issue_refund(self, payment_id: str, amount: Optional[float] = None,
                     reason: Optional[str] = None) -> RefundResult:
        ...

    @abstractmethod
    def check_status(self, payment_id: str) -> PaymentStatusResult:
        ...

    def describe(self) -> Dict[str, Any]:
        return {"id": self.provider_id, "name": self.name, "isActive": self.is_active}

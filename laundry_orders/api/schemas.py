from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

# Field names follow the JSON the order form and dashboard already send.


class OrderCreateRequest(BaseModel):
    name: Optional[str] = None
    room: Optional[str] = None
    service: Optional[str] = None
    serviceId: Optional[str] = None
    paymentMethod: Optional[str] = None
    orderReference: Optional[str] = None
    totalAmount: Optional[float] = None
    basePrice: Optional[float] = None
    amountPaid: Optional[float] = None
    tipAmount: Optional[float] = None
    royaltyFee: Optional[float] = None
    time: Optional[str] = None
    email: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None


class CheckoutSessionRequest(BaseModel):
    amount: Optional[float] = None
    price: Optional[float] = None
    description: Optional[str] = None
    successUrl: str
    cancelUrl: str
    orderReference: Optional[str] = None
    orderId: Optional[str] = None
    name: Optional[str] = None
    room: Optional[str] = None
    service: Optional[str] = None
    email: Optional[str] = None


class RefundRequest(BaseModel):
    providerId: Optional[str] = None
    paymentId: Optional[str] = None
    amount: Optional[float] = None
    reason: Optional[str] = None

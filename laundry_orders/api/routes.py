import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from laundry_orders.api.deps import AppContext, get_context
from laundry_orders.api.schemas import (
    CheckoutSessionRequest,
    OrderCreateRequest,
    RefundRequest,
    StatusUpdateRequest,
)
from laundry_orders.errors import OrderNotFound, ValidationError
from laundry_orders.payments.base import CheckoutRequest
from laundry_orders.payments.registry import active_providers
from laundry_orders.types.order_types import isoformat, utcnow

logger = logging.getLogger("http")

router = APIRouter()


@router.get("/health", tags=["System"])
@router.get("/api/health", tags=["System"])
async def health(ctx: AppContext = Depends(get_context)):
    return {
        "status": "ok",
        "timestamp": isoformat(utcnow()),
        "services": list(ctx.catalog.services),
        "vendors": list(ctx.catalog.vendors),
        "persistent": ctx.store.persistent,
    }


@router.get("/api/services", tags=["Catalog"])
async def list_services(ctx: AppContext = Depends(get_context)):
    return [s.to_dict() for s in ctx.catalog.active_services()]


@router.get("/api/vendors", tags=["Catalog"])
async def list_vendors(serviceId: Optional[str] = Query(None), ctx: AppContext = Depends(get_context)):
    return [v.to_dict() for v in ctx.catalog.active_vendors(serviceId)]


@router.get("/api/orders", tags=["Orders"])
def list_orders(ctx: AppContext = Depends(get_context)):
    return [o.to_dict() for o in ctx.orders.get_orders()]


@router.get("/api/orders/{order_id}", tags=["Orders"])
def get_order(order_id: str, ctx: AppContext = Depends(get_context)):
    order = ctx.orders.get_order_by_id(order_id)
    if order is None:
        raise OrderNotFound(order_id)
    return order.to_dict()


@router.post("/api/orders", status_code=201, tags=["Orders"])
def create_order(req: OrderCreateRequest, ctx: AppContext = Depends(get_context)):
    order = ctx.orders.create_order(req.model_dump(exclude_none=True))
    return order.to_dict()


@router.put("/api/orders/{order_id}/status", tags=["Orders"])
def update_order_status(order_id: str, req: StatusUpdateRequest, ctx: AppContext = Depends(get_context)):
    order = ctx.orders.update_order_status(order_id, req.status)
    return order.to_dict()


@router.post("/api/stripe-webhook", tags=["Payments"])
async def stripe_webhook(request: Request, ctx: AppContext = Depends(get_context)):
    # signature is computed over the exact bytes Stripe sent
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    return await run_in_threadpool(ctx.reconciler.handle, payload, signature)


@router.post("/api/create-checkout-session", tags=["Payments"])
def create_checkout_session(req: CheckoutSessionRequest, ctx: AppContext = Depends(get_context)):
    amount = req.amount if req.amount is not None else req.price
    if amount is None:
        raise ValidationError("amount required")
    if amount <= 0:
        raise ValidationError("amount must be positive")

    service = req.service or "Laundry"
    description = req.description
    if not description and req.name:
        description = f"Laundry service for {req.name} (Room: {req.room or 'Not specified'})"

    session = ctx.checkout_provider.create_session(CheckoutRequest(
        amount=amount,
        description=description or "",
        success_url=req.successUrl,
        cancel_url=req.cancelUrl,
        product_name=f"{service} Service",
        currency=ctx.settings.currency,
        customer_email=req.email,
        metadata={
            "orderId": req.orderId,
            "orderReference": req.orderReference,
            "service": req.service,
            "room": req.room,
            "name": req.name,
        },
    ))
    ctx.orders.record_checkout_started(req.orderReference, session.id)
    return {"url": session.url, "sessionId": session.id}


@router.get("/api/payments/providers", tags=["Payments"])
async def list_providers(ctx: AppContext = Depends(get_context)):
    return [p.describe() for p in ctx.providers.values()]


@router.get("/api/payments/providers/active", tags=["Payments"])
async def list_active_providers(ctx: AppContext = Depends(get_context)):
    return [p.describe() for p in active_providers(ctx.providers)]


@router.get("/api/payments/status/{provider_id}/{payment_id}", tags=["Payments"])
def payment_status(provider_id: str, payment_id: str, ctx: AppContext = Depends(get_context)):
    provider = ctx.providers.get(provider_id)
    if provider is None:
        raise HTTPException(status_code=404, detail=f"Payment provider {provider_id} not found")
    result = provider.check_status(payment_id)
    return {"status": result.status, "details": result.details}


@router.post("/api/payments/refund", tags=["Payments"])
def refund_payment(req: RefundRequest, ctx: AppContext = Depends(get_context)):
    if not req.providerId or not req.paymentId or not req.amount:
        raise HTTPException(status_code=400, detail="Missing required fields")
    provider = ctx.providers.get(req.providerId)
    if provider is None:
        raise HTTPException(status_code=404, detail=f"Payment provider {req.providerId} not found")
    result = provider.issue_refund(req.paymentId, req.amount, req.reason)
    logger.info(f"[Payments] refund {result.refund_id} for {req.paymentId} via {req.providerId}")
    return {"success": result.success, "refundId": result.refund_id, "error": result.error}

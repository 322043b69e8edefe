from dataclasses import dataclass
from typing import Dict

from fastapi import Request

from laundry_orders.config import Settings
from laundry_orders.db.store import OrderStore
from laundry_orders.payments.base import PaymentProvider
from laundry_orders.payments.reconciliation import PaymentReconciler
from laundry_orders.services.catalog import Catalog
from laundry_orders.services.order_service import OrderService


@dataclass
class AppContext:
    settings: Settings
    store: OrderStore
    orders: OrderService
    catalog: Catalog
    providers: Dict[str, PaymentProvider]
    checkout_provider: PaymentProvider
    reconciler: PaymentReconciler


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx

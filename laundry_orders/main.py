import logging
import sys
import time
from typing import Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from laundry_orders.api.deps import AppContext
from laundry_orders.api.routes import router
from laundry_orders.config import Settings
from laundry_orders.db.store import OrderStore
from laundry_orders.errors import OrderSystemError, UpstreamProviderError
from laundry_orders.payments.base import PaymentProvider
from laundry_orders.payments.reconciliation import PaymentReconciler
from laundry_orders.payments.registry import build_providers
from laundry_orders.services.catalog import Catalog, default_catalog
from laundry_orders.services.order_service import OrderService

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
)
logger = logging.getLogger("main")
http_logger = logging.getLogger("http")


def create_app(settings: Optional[Settings] = None,
               store: Optional[OrderStore] = None,
               providers: Optional[Dict[str, PaymentProvider]] = None,
               catalog: Optional[Catalog] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)

    store = store or OrderStore(settings.resolved_database_url)
    store.import_document(settings.legacy_orders_file)
    orders = OrderService(store, royalty_rate=settings.royalty_rate)
    if providers is None:
        providers = build_providers(settings)
    checkout_provider = providers["stripe"]

    app = FastAPI(title="Laundry Orders")
    app.state.ctx = AppContext(
        settings=settings,
        store=store,
        orders=orders,
        catalog=catalog or default_catalog(settings.royalty_rate),
        providers=providers,
        checkout_provider=checkout_provider,
        reconciler=PaymentReconciler(checkout_provider, orders),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = (time.perf_counter() - started) * 1000
        http_logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed:.1f}ms")
        return response

    @app.exception_handler(OrderSystemError)
    async def order_system_error(request: Request, exc: OrderSystemError):
        body = {"error": exc.message}
        if isinstance(exc, UpstreamProviderError) and not settings.is_production:
            body["details"] = exc.details
        if exc.status_code >= 500:
            logger.error(f"[API] {request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"[API] {request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        details = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception(f"[API] unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    app.include_router(router)
    logger.info(f"[Main] app ready (env={settings.environment}, store={store.database_url})")
    return app


def run() -> None:
    try:
        settings = Settings.from_env()
        uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
    except Exception:
        # fail fast, a supervisor restarts the process
        logger.exception("[Main] server crashed")
        sys.exit(1)


if __name__ == "__main__":
    run()

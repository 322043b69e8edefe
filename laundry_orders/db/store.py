import json
import logging
import os
import threading
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from laundry_orders.db.models import Base, OrderRow, ProcessedEvent
from laundry_orders.db.session import make_engine, make_session_factory
from laundry_orders.errors import OrderNotFound, PersistenceError, ValidationError
from laundry_orders.types.order_types import (
    DEFAULT_SERVICE,
    Order,
    OrderStatus,
    merge_metadata,
    next_timestamp,
    utcnow,
)

logger = logging.getLogger("store")

UPDATABLE_FIELDS = {
    "customer_name", "room", "service", "amount_paid", "tip_amount", "royalty_fee",
    "total_amount", "payment_method", "time", "metadata",
}


def _row_to_order(row: OrderRow) -> Order:
    try:
        status = OrderStatus.parse(row.status, allow_legacy=True)
    except ValueError:
        logger.warning(f"[Store] order {row.id} has unknown status {row.status!r}, treating as Pending")
        status = OrderStatus.PENDING
    if status.value != row.status:
        logger.info(f"[Store] migrated status of {row.id}: {row.status!r} -> {status.value!r}")
    created_at = row.created_at or utcnow()
    return Order(
        id=row.id,
        customer_name=row.customer_name,
        room=row.room,
        service=row.service or DEFAULT_SERVICE,
        amount_paid=row.amount_paid or 0.0,
        tip_amount=row.tip_amount or 0.0,
        royalty_fee=row.royalty_fee or 0.0,
        total_amount=row.total_amount,
        status=status,
        payment_method=row.payment_method,
        time=row.time,
        created_at=created_at,
        updated_at=max(row.updated_at or created_at, created_at),
        metadata=dict(row.metadata_json or {}),
    )


def _order_to_row(order: Order) -> OrderRow:
    return OrderRow(
        id=order.id,
        customer_name=order.customer_name,
        room=order.room,
        service=order.service,
        amount_paid=order.amount_paid,
        tip_amount=order.tip_amount,
        royalty_fee=order.royalty_fee,
        total_amount=order.total_amount,
        status=order.status.value,
        payment_method=order.payment_method,
        time=order.time,
        metadata_json=dict(order.metadata),
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


class OrderStore:
    """
    Keyed collection of orders held in memory and mirrored to a SQL table.

    Every mutation is written through in its own transaction before the call
    returns. If the database cannot be opened or written, the store logs a
    PersistenceError and keeps serving from memory for the rest of the process.
    """

    def __init__(self, database_url: str):
        self._orders: Dict[str, Order] = {}
        self._processed_events: set = set()
        self._lock = threading.RLock()
        self._session_factory = None
        self._persistent = True
        self.database_url = database_url

        try:
            engine = make_engine(database_url)
            Base.metadata.create_all(bind=engine)
            self._session_factory = make_session_factory(engine)
            self._load()
        except (SQLAlchemyError, OSError) as e:
            self._degrade(PersistenceError(f"could not open order store: {e}"))

    @property
    def persistent(self) -> bool:
        return self._persistent

    def _degrade(self, error: PersistenceError) -> None:
        logger.error(f"[Store] {error.message}; continuing in memory, data will not survive a restart")
        self._persistent = False

    def _load(self) -> None:
        with self._session_factory() as db:
            rows = db.query(OrderRow).all()
            self._orders = {row.id: _row_to_order(row) for row in rows}
            self._processed_events = {e.event_id for e in db.query(ProcessedEvent).all()}
        logger.info(f"[Store] loaded {len(self._orders)} orders from {self.database_url}")

    def _write(self, apply: Callable[[Any], None]) -> None:
        if not self._persistent:
            return
        try:
            with self._session_factory() as db:
                apply(db)
                db.commit()
        except SQLAlchemyError as e:
            self._degrade(PersistenceError(f"write failed: {e}"))

    def _save(self, order: Order) -> None:
        self._write(lambda db: db.merge(_order_to_row(order)))

    def create(self, order: Order) -> Order:
        """Insert, or replace an order with the same id keeping its created_at, status progress and metadata."""
        with self._lock:
            existing = self._orders.get(order.id)
            if existing is not None:
                # status never moves back and recorded metadata is never dropped
                status = existing.status if existing.status.rank > order.status.rank else order.status
                stored = order.copy(
                    status=status,
                    metadata=merge_metadata(existing.metadata, order.metadata),
                    created_at=existing.created_at,
                    updated_at=next_timestamp(existing.updated_at),
                )
                logger.info(f"[Store] replaced order {order.id}")
            else:
                stored = order.copy(updated_at=max(order.updated_at, order.created_at))
                logger.info(f"[Store] created order {order.id}")
            self._orders[stored.id] = stored
            self._save(stored)
            return stored.copy()

    def find_all(self) -> List[Order]:
        with self._lock:
            # ties go to the most recently inserted
            orders = sorted(reversed(list(self._orders.values())), key=lambda o: o.created_at, reverse=True)
            return [o.copy() for o in orders]

    def find_by_id(self, order_id: str) -> Optional[Order]:
        with self._lock:
            order = self._orders.get(order_id)
            return order.copy() if order is not None else None

    def find_by_metadata(self, key: str, value: Any) -> Optional[Order]:
        with self._lock:
            for order in self._orders.values():
                if order.metadata.get(key) == value:
                    return order.copy()
            return None

    def update(self, order_id: str, changes: Dict[str, Any]) -> Order:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"cannot update fields: {', '.join(sorted(unknown))}")

        with self._lock:
            existing = self._orders.get(order_id)
            if existing is None:
                raise OrderNotFound(order_id)

            values = dict(changes)
            if "metadata" in values:
                values["metadata"] = merge_metadata(existing.metadata, values["metadata"])
            updated = existing.copy(updated_at=next_timestamp(existing.updated_at), **values)

            self._orders[order_id] = updated
            self._save(updated)
            return updated.copy()

    def update_status(self, order_id: str, status: OrderStatus,
                      guard: Optional[Callable[[Order], None]] = None) -> Order:
        """Set status only. `guard` runs under the store lock and may raise to veto the change."""
        with self._lock:
            existing = self._orders.get(order_id)
            if existing is None:
                raise OrderNotFound(order_id)
            if guard is not None:
                guard(existing.copy())

            updated = existing.copy(status=status, updated_at=next_timestamp(existing.updated_at))
            self._orders[order_id] = updated
            self._save(updated)
            logger.info(f"[Store] {order_id} status {existing.status.value} -> {status.value}")
            return updated.copy()

    def has_processed_event(self, event_id: str) -> bool:
        with self._lock:
            return event_id in self._processed_events

    def record_processed_event(self, event_id: str, event_type: str, order_id: Optional[str] = None) -> None:
        with self._lock:
            self._processed_events.add(event_id)
            self._write(lambda db: db.merge(ProcessedEvent(
                event_id=event_id,
                type=event_type,
                order_id=order_id,
                processed_at=utcnow(),
            )))

    def import_document(self, path: str) -> int:
        """Import the JSON order document written by earlier releases, once, into an empty store."""
        if not os.path.exists(path):
            return 0
        with self._lock:
            if self._orders:
                logger.info(f"[Store] skipping import of {path}: store already has orders")
                return 0
            try:
                with open(path, "r", encoding="utf-8") as f:
                    documents = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"[Store] could not read legacy document {path}: {e}")
                return 0

            imported = 0
            for doc in documents:
                try:
                    order = Order.from_dict(doc)
                except (KeyError, ValueError, TypeError) as e:
                    logger.warning(f"[Store] skipping malformed legacy order {doc!r}: {e}")
                    continue
                self._orders[order.id] = order
                self._save(order)
                imported += 1
            logger.info(f"[Store] imported {imported} orders from {path}")
            return imported

from sqlalchemy import Column, String, Float, DateTime, JSON
from sqlalchemy.orm import declarative_base

from laundry_orders.types.order_types import utcnow

Base = declarative_base()


class OrderRow(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True)
    customer_name = Column(String, default="Unknown")
    room = Column(String, default="Unknown")
    service = Column(String)
    amount_paid = Column(Float, default=0.0)
    tip_amount = Column(Float, default=0.0)
    royalty_fee = Column(Float, default=0.0)
    total_amount = Column(Float, nullable=False)
    # plain string so rows written by older releases still load
    status = Column(String, default="Pending")
    payment_method = Column(String, default="cash")
    time = Column(String)
    metadata_json = Column(JSON, default=dict)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow)


class ProcessedEvent(Base):
    __tablename__ = "processed_events"

    event_id = Column(String, primary_key=True)
    type = Column(String)
    order_id = Column(String)
    processed_at = Column(DateTime, default=utcnow)

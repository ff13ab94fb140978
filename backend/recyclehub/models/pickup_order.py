from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func

from recyclehub.database.base import Base


class PickupOrder(Base):
    __tablename__ = "pickup_orders"
    __table_args__ = (
        Index("ix_pickup_orders_status_created_at", "status", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(40), unique=True, index=True, nullable=True)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    dropping_point_id = Column(Integer, ForeignKey("dropping_points.id"), nullable=False, index=True)
    category = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    phone_number = Column(String(40), nullable=False)
    comment = Column(Text, nullable=False, default="")
    image = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    assigned_to = Column(Integer, ForeignKey("users.id"), nullable=True)
    status_updated_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)


class OrderCompletion(Base):
    __tablename__ = "order_completions"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("pickup_orders.id"), unique=True, nullable=False, index=True)
    completed_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    completion_notes = Column(Text, nullable=False, default="")
    completed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

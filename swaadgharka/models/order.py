import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from swaadgharka.core.database import Base


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    order_number = Column(String(20), unique=True, index=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    order_type = Column(String(20), default="delivery", nullable=False)  # delivery | pickup

    # Pricing, integer rupees, always computed server-side
    subtotal = Column(Integer, default=0, nullable=False)
    tax = Column(Integer, default=0, nullable=False)
    delivery_fee = Column(Integer, default=0, nullable=False)
    packaging_fee = Column(Integer, default=0, nullable=False)
    discount = Column(Integer, default=0, nullable=False)
    total = Column(Integer, default=0, nullable=False)

    delivery_address_json = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    contact_phone = Column(String(20), nullable=False)
    contact_alternate_phone = Column(String(20), nullable=True)
    contact_email = Column(String(255), nullable=True)

    # Payment
    payment_method = Column(String(20), nullable=False)  # card | upi | cod | wallet
    payment_status = Column(String(20), default="pending", nullable=False)
    payment_gateway = Column(String(30), nullable=True)
    transaction_id = Column(String(120), index=True, nullable=True)
    paid_amount = Column(Integer, nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    refund_id = Column(String(120), nullable=True)
    refund_amount = Column(Integer, nullable=True)
    refund_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(30), default="placed", index=True, nullable=False)

    is_scheduled = Column(Boolean, default=False, nullable=False)
    scheduled_date = Column(DateTime(timezone=True), nullable=True)
    scheduled_time = Column(String(5), nullable=True)
    estimated_preparation_minutes = Column(Integer, nullable=True)
    estimated_delivery_time = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_time = Column(DateTime(timezone=True), nullable=True)

    special_instructions = Column(Text, nullable=True)

    # Written once, after fulfilment
    rating_food = Column(Integer, nullable=True)
    rating_delivery = Column(Integer, nullable=True)
    rating_overall = Column(Integer, nullable=True)
    review = Column(Text, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    cancellation_reason = Column(String(40), nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    refund_processed = Column(Boolean, default=False, nullable=False)

    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    customer = relationship("User", back_populates="orders", foreign_keys=[customer_id])
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.id",
    )

    @property
    def can_cancel(self) -> bool:
        return self.status in {"placed", "confirmed"} and self.payment_status != "completed"

    @property
    def is_delivered(self) -> bool:
        return self.status in {"delivered", "picked-up"}

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def item_summary(self) -> str:
        return ", ".join(f"{item.quantity}x {item.name}" for item in self.items)

    @property
    def full_delivery_address(self) -> str | None:
        address = self.delivery_address_json or {}
        if not address:
            return None
        parts = [
            address.get("street"),
            address.get("landmark"),
            address.get("city"),
            address.get("state"),
        ]
        text = ", ".join(part for part in parts if part)
        pincode = address.get("pincode")
        return f"{text} - {pincode}" if pincode else text

import sqlalchemy as sa
from sqlalchemy import Boolean, Column, DateTime, Integer, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from swaadgharka.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(50), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=False)

    role = Column(String(20), default="customer", nullable=False)  # customer | admin
    is_active = Column(Boolean, default=True, nullable=False)

    # Saved delivery address and food preferences, merged key by key on update
    address_json = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    preferences_json = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    orders = relationship("Order", back_populates="customer", foreign_keys="Order.customer_id")

    @property
    def is_admin(self) -> bool:
        return (self.role or "").strip().lower() == "admin"

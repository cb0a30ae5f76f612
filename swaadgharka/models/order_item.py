import sqlalchemy as sa
from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from swaadgharka.core.database import Base


class OrderItem(Base):
    """Line snapshot taken when the order is placed; never re-read from the menu."""

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id"), index=True, nullable=False)

    name = Column(String(100), nullable=False)
    unit_price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    customizations_json = Column(JSONB().with_variant(sa.JSON(), "sqlite"), nullable=True)
    special_instructions = Column(Text, nullable=True)
    line_total = Column(Integer, nullable=False, default=0)

    order = relationship("Order", back_populates="items")

    @property
    def customizations(self) -> list[dict]:
        return list(self.customizations_json or [])

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from swaadgharka.core.database import Base

_JSON = JSONB().with_variant(sa.JSON(), "sqlite")


class MenuItem(Base):
    __tablename__ = "menu_items"
    __table_args__ = (
        Index("ix_menu_items_category_active", "category", "active"),
        Index("ix_menu_items_cuisine_active", "cuisine", "active"),
        Index("ix_menu_items_ratings_average", "ratings_average"),
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False)
    price = Column(Integer, nullable=False, index=True)
    original_price = Column(Integer, nullable=True)
    category = Column(String(40), nullable=False)
    cuisine = Column(String(40), nullable=False)
    spice_level = Column(String(20), default="medium", nullable=False)
    preparation_time = Column(Integer, nullable=False)  # minutes
    serving_size = Column(String(20), default="1 person", nullable=False)

    # Heavy fields, left out of list responses
    ingredients_json = Column(_JSON, nullable=True)
    nutritional_info_json = Column(_JSON, nullable=True)
    images_json = Column(_JSON, nullable=True)

    # Availability
    is_available = Column(Boolean, default=True, nullable=False)
    available_days_json = Column(_JSON, nullable=True)  # empty/null = every day
    available_from = Column(String(5), nullable=True)  # HH:MM
    available_until = Column(String(5), nullable=True)
    max_orders_per_day = Column(Integer, default=100, nullable=False)
    current_orders_today = Column(Integer, default=0, nullable=False)
    orders_counter_date = Column(Date, nullable=True)

    ratings_average = Column(Float, default=0.0, nullable=False)
    ratings_count = Column(Integer, default=0, nullable=False)

    is_special = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    tag_rows = relationship("MenuItemTag", cascade="all, delete-orphan", lazy="selectin")
    reviews = relationship(
        "MenuItemReview",
        back_populates="menu_item",
        order_by="MenuItemReview.created_at.desc()",
    )

    @property
    def tags(self) -> list[str]:
        return sorted(row.tag for row in self.tag_rows)

    @property
    def available_days(self) -> list[str]:
        return list(self.available_days_json or [])


class MenuItemTag(Base):
    __tablename__ = "menu_item_tags"
    __table_args__ = (UniqueConstraint("menu_item_id", "tag", name="uq_menu_item_tag"),)

    id = Column(Integer, primary_key=True)
    menu_item_id = Column(Integer, ForeignKey("menu_items.id", ondelete="CASCADE"), nullable=False, index=True)
    tag = Column(String(30), nullable=False, index=True)

from sqlalchemy import Column, Integer, String

from swaadgharka.core.database import Base


class OrderSequence(Base):
    """Per-day counter behind order numbers. Advanced with an atomic upsert."""

    __tablename__ = "order_sequences"

    day = Column(String(6), primary_key=True)  # YYMMDD, business timezone
    last_value = Column(Integer, nullable=False, default=0)

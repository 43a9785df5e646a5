from decimal import Decimal
from typing import Any, Optional
from sqlalchemy import JSON, Index, Numeric, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from cashback_webhook.db.base import Base
from cashback_webhook.models import TimestampMixin


class CashbackEvent(Base, TimestampMixin):
    """
    One row per paid Shopify order.
    order_id is the primary key, so a replayed webhook can never add a second row.
    Text and unbounded Numeric columns, so no upstream value is too long or too large to store.
    """

    __tablename__ = "cashback_events"
    order_id: Mapped[str] = mapped_column(Text, primary_key=True)
    shop_domain: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    currency: Mapped[str] = mapped_column(Text, nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    cashback_percent: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    cashback_amount: Mapped[Decimal] = mapped_column(Numeric, nullable=False)
    raw: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=True)


Index("idx_cashback_events_customer_email", CashbackEvent.customer_email)
Index("idx_cashback_events_created_at", CashbackEvent.created_at.desc())

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union
from pydantic import BaseModel


class NormalizedOrder(BaseModel):
    kind: Literal["complete"] = "complete"
    order_id: str
    customer_email: Optional[str] = None
    currency: str
    total_paid: Decimal


class MissingOrderData(BaseModel):
    kind: Literal["missing"] = "missing"
    reason: str
    order_id: Optional[str] = None


NormalizationResult = Union[NormalizedOrder, MissingOrderData]


class CashbackEventCreate(BaseModel):
    order_id: str
    shop_domain: str
    customer_email: Optional[str] = None
    currency: str
    total_paid: Decimal
    cashback_percent: Decimal
    cashback_amount: Decimal
    raw: Dict[str, Any]


class RecordOutcome(str, Enum):
    INSERTED = "inserted"
    DUPLICATE = "duplicate"
    REFRESHED = "refreshed"
    FAILED = "failed"


class ReplayPolicy(str, Enum):
    IGNORE = "ignore"
    REFRESH = "refresh"


class WebhookAck(BaseModel):
    status: str
    order_id: Optional[str] = None

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional
from cashback_webhook.schemas.cashback import MissingOrderData, NormalizationResult, NormalizedOrder
from cashback_webhook.schemas.shopify_order import ShopifyOrderPayload

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"


def first_present(*values: Any) -> Optional[Any]:
    """Return the first value that is not None and not blank."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def normalize_order(payload: Mapping[str, Any]) -> NormalizationResult:
    """
    Pull the order fields out of an orders/paid body.

    Each field takes the first non-empty candidate:
      order id  id, order_id
      email     email, customer.email, customer.default_address.email
      currency  currency, presentment_currency, total_price_set.shop_money.currency_code
      amount    total_price, current_total_price, total_price_set.shop_money.amount

    A missing order id or an amount that is not a positive number yields
    MissingOrderData; the caller acknowledges it without persisting. A
    candidate of the wrong type (say a string where customer should be an
    object) is skipped like an absent one.
    """
    order = ShopifyOrderPayload.model_validate(payload)

    customer = order.customer
    address = customer.default_address if customer else None
    shop_money = order.total_price_set.shop_money if order.total_price_set else None

    raw_order_id = first_present(order.id, order.order_id)
    if raw_order_id is None:
        return MissingOrderData(reason="missing order id")
    order_id = str(raw_order_id).strip()

    email = first_present(
        order.email,
        customer.email if customer else None,
        address.email if address else None,
    )

    currency = first_present(
        order.currency,
        order.presentment_currency,
        shop_money.currency_code if shop_money else None,
    ) or DEFAULT_CURRENCY

    raw_amount = first_present(
        order.total_price,
        order.current_total_price,
        shop_money.amount if shop_money else None,
    )
    total_paid = to_decimal(raw_amount)
    if total_paid is None or total_paid <= 0:
        return MissingOrderData(reason="missing or non-positive total", order_id=order_id)

    return NormalizedOrder(
        order_id=order_id,
        customer_email=email.strip() if email else None,
        currency=currency.strip().upper(),
        total_paid=total_paid,
    )

import logging
from typing import Any, Optional, Union
from pydantic import BaseModel, ConfigDict, ValidationError, ValidatorFunctionWrapHandler, field_validator

logger = logging.getLogger(__name__)

# Shopify sends ids as integers and money as strings, but older API versions
# and test tools are not consistent about it.
Scalar = Union[int, float, str]


class ShopifyModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    @field_validator("*", mode="wrap")
    @classmethod
    def drop_wrong_shape(cls, value: Any, handler: ValidatorFunctionWrapHandler) -> Any:
        """A candidate of the wrong type reads as absent, so the next fallback is used."""
        try:
            return handler(value)
        except ValidationError:
            logger.debug(f"ignoring {cls.__name__} field of unexpected type {type(value).__name__}")
            return None


class ShopifyAddress(ShopifyModel):
    email: Optional[str] = None


class ShopifyCustomer(ShopifyModel):
    email: Optional[str] = None
    default_address: Optional[ShopifyAddress] = None


class ShopifyMoney(ShopifyModel):
    amount: Optional[Scalar] = None
    currency_code: Optional[str] = None


class ShopifyPriceSet(ShopifyModel):
    shop_money: Optional[ShopifyMoney] = None


class ShopifyOrderPayload(ShopifyModel):
    """
    The subset of the orders/paid body the receiver reads.
    Every field is optional; the normalizer decides what is missing.
    """
    id: Optional[Scalar] = None
    order_id: Optional[Scalar] = None
    email: Optional[str] = None
    customer: Optional[ShopifyCustomer] = None
    currency: Optional[str] = None
    presentment_currency: Optional[str] = None
    total_price: Optional[Scalar] = None
    current_total_price: Optional[Scalar] = None
    total_price_set: Optional[ShopifyPriceSet] = None

from enum import Enum
from typing import Iterable, Optional

ORDERS_PAID_TOPICS = frozenset({"orders/paid", "orders_paid"})


class GateDecision(str, Enum):
    PASS = "pass"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    FORBIDDEN_DOMAIN = "forbidden_domain"
    IGNORED_TOPIC = "ignored_topic"


def normalize_header(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_orders_paid_topic(topic: Optional[str]) -> bool:
    return normalize_header(topic) in ORDERS_PAID_TOPICS


def evaluate_request(method: str,
                     shop_domain: Optional[str],
                     topic: Optional[str],
                     allowed_domains: Iterable[str]) -> GateDecision:
    """
    Decide whether a request may reach signature verification.

    Checks run in order: method, shop domain, topic. An empty allow-list
    rejects every domain. A topic other than orders/paid is not an error;
    the caller acknowledges it so Shopify stops retrying.
    """
    if method.upper() != "POST":
        return GateDecision.METHOD_NOT_ALLOWED

    shop = normalize_header(shop_domain)
    allowed = {normalize_header(domain) for domain in allowed_domains}
    allowed.discard("")
    if not shop or shop not in allowed:
        return GateDecision.FORBIDDEN_DOMAIN

    if not is_orders_paid_topic(topic):
        return GateDecision.IGNORED_TOPIC

    return GateDecision.PASS

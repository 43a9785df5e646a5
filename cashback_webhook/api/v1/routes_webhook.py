import json
import logging
import time
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cashback_webhook.core.config import Settings, get_settings
from cashback_webhook.core.exceptions import (
    ForbiddenDomainError,
    InvalidSignatureError,
    MalformedPayloadError,
    MethodNotAllowedError,
    SecretNotConfiguredError,
)
from cashback_webhook.crud.cashback_event import crud_cashback_event
from cashback_webhook.db.session import get_db_session
from cashback_webhook.schemas.cashback import (
    CashbackEventCreate,
    MissingOrderData,
    RecordOutcome,
    ReplayPolicy,
    WebhookAck,
)
from cashback_webhook.services.audit import webhook_audit
from cashback_webhook.services.cashback_calculator import calculate_cashback, effective_percent
from cashback_webhook.services.normalizer import normalize_order
from cashback_webhook.services.request_gate import GateDecision, evaluate_request
from cashback_webhook.services.signature import SIGNATURE_HEADER, verify_signature

router = APIRouter(prefix="/webhooks")
logger = logging.getLogger(__name__)

SHOP_DOMAIN_HEADER = "X-Shopify-Shop-Domain"
TOPIC_HEADER = "X-Shopify-Topic"

ACK_STATUS = {
    RecordOutcome.INSERTED: "processed",
    RecordOutcome.DUPLICATE: "duplicate",
    RecordOutcome.REFRESHED: "refreshed",
    RecordOutcome.FAILED: "storage_failed",
}


@router.api_route("/shopify/orders-paid",
                  methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
                  response_model=WebhookAck)
async def shopify_orders_paid(
        request: Request,
        settings: Settings = Depends(get_settings),
        db: AsyncSession = Depends(get_db_session)):
    """
    Handle Shopify orders/paid webhooks.

    1. Gate on method, shop domain and topic
    2. Verify the HMAC over the raw body
    3. Parse and normalize the order
    4. Compute cashback and record it once per order

    Ignored topics, orders without usable data and storage failures are all
    acknowledged with 200 so Shopify does not retry them.
    """
    start = time.time()
    shop_domain = request.headers.get(SHOP_DOMAIN_HEADER)
    topic = request.headers.get(TOPIC_HEADER)

    # 1. Gate
    decision = evaluate_request(
        request.method, shop_domain, topic, settings.allowed_domains)
    if decision is GateDecision.METHOD_NOT_ALLOWED:
        webhook_audit.record("method_not_allowed", topic)
        raise MethodNotAllowedError()
    if decision is GateDecision.FORBIDDEN_DOMAIN:
        logger.warning(f"Rejected webhook from shop domain {shop_domain!r}")
        webhook_audit.record("forbidden_domain", topic)
        raise ForbiddenDomainError()
    if decision is GateDecision.IGNORED_TOPIC:
        webhook_audit.record("ignored_topic", topic)
        return WebhookAck(status="ignored_topic")

    # 2. Verify signature on the bytes exactly as received
    body = await request.body()
    if not settings.SHOPIFY_WEBHOOK_SECRET:
        logger.error("SHOPIFY_WEBHOOK_SECRET is not configured")
        webhook_audit.record("secret_missing", topic)
        raise SecretNotConfiguredError()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.SHOPIFY_WEBHOOK_SECRET):
        webhook_audit.record("signature_failed", topic)
        raise InvalidSignatureError()

    # 3. Parse and normalize
    try:
        payload = json.loads(body)
    except ValueError:
        # JSONDecodeError, UnicodeDecodeError and the int digit limit are all ValueErrors
        webhook_audit.record("invalid_json", topic)
        raise MalformedPayloadError()
    if not isinstance(payload, dict):
        webhook_audit.record("invalid_json", topic)
        raise MalformedPayloadError()

    order = normalize_order(payload)
    if isinstance(order, MissingOrderData):
        logger.info(f"Skipping orders/paid webhook: {order.reason}")
        webhook_audit.record("missing_order_data", topic, order.order_id)
        return WebhookAck(status="missing_order_data", order_id=order.order_id)

    # 4. Calculate and record
    percent = effective_percent(settings.CASHBACK_PERCENT)
    cashback_amount = calculate_cashback(order.total_paid, percent)
    event = CashbackEventCreate(
        order_id=order.order_id,
        shop_domain=shop_domain.strip().lower(),
        customer_email=order.customer_email,
        currency=order.currency,
        total_paid=order.total_paid,
        cashback_percent=percent,
        cashback_amount=cashback_amount,
        raw=payload,
    )
    outcome = await crud_cashback_event.record(
        db, event, ReplayPolicy(settings.CASHBACK_REPLAY_POLICY))

    status = ACK_STATUS[outcome]
    webhook_audit.record(status, topic, order.order_id)
    elapsed_ms = (time.time() - start) * 1000
    logger.info(
        f"orders/paid shop={event.shop_domain} order={event.order_id} currency={event.currency} "
        f"total={event.total_paid} percent={percent} cashback={cashback_amount} "
        f"outcome={outcome.value} in {elapsed_ms:.1f}ms")
    return WebhookAck(status=status, order_id=order.order_id)


@router.get("/status")
async def webhook_status():
    """Webhook outcome counters since process start."""
    return {"counts": webhook_audit.snapshot()}

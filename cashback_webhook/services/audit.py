import logging
from collections import Counter
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class WebhookAudit:
    """
    Audit log plus in-memory counters for every webhook outcome.
    Storage failures are acknowledged to Shopify, so this is where they show up.
    """

    def __init__(self):
        self._counts: Counter = Counter()

    def record(self, status: str, topic: Optional[str] = None, order_id: Optional[str] = None) -> None:
        self._counts[status] += 1
        logger.info(
            f"WEBHOOK_AUDIT topic={topic or '-'} order={order_id or '-'} "
            f"status={status} count={self._counts[status]}")

    def snapshot(self) -> Dict[str, int]:
        return dict(self._counts)

    def reset(self) -> None:
        self._counts.clear()


webhook_audit = WebhookAudit()

import logging
from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from cashback_webhook.models.cashback_event import CashbackEvent
from cashback_webhook.schemas.cashback import CashbackEventCreate, RecordOutcome, ReplayPolicy

logger = logging.getLogger(__name__)

INSERT_CONSTRUCTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

# created_at is never part of a refresh
REFRESHED_COLUMNS = (
    "shop_domain",
    "customer_email",
    "currency",
    "total_paid",
    "cashback_percent",
    "cashback_amount",
    "raw",
)


class CRUDCashbackEvent:
    def _insert_statement(self, db: AsyncSession, data: CashbackEventCreate, policy: ReplayPolicy):
        dialect = db.get_bind().dialect.name
        insert = INSERT_CONSTRUCTS.get(dialect)
        if insert is None:
            raise NotImplementedError(
                f"ON CONFLICT upsert is not supported for dialect {dialect}")

        now = datetime.now(timezone.utc)
        stmt = insert(CashbackEvent).values(
            **data.model_dump(), created_at=now, updated_at=now)
        if policy is ReplayPolicy.REFRESH:
            stmt = stmt.on_conflict_do_update(
                index_elements=[CashbackEvent.order_id],
                set_={
                    **{column: stmt.excluded[column] for column in REFRESHED_COLUMNS},
                    "updated_at": now,
                }
            )
        else:
            stmt = stmt.on_conflict_do_nothing(
                index_elements=[CashbackEvent.order_id])
        return stmt.returning(CashbackEvent.created_at, CashbackEvent.updated_at)

    async def record(self, db: AsyncSession, data: CashbackEventCreate,
                     policy: ReplayPolicy = ReplayPolicy.IGNORE) -> RecordOutcome:
        """
        Persist one cashback event per order in a single INSERT ... ON CONFLICT.

        The unique order_id does the deduplication, so concurrent deliveries
        of the same order cannot both insert. Storage errors are rolled back,
        logged and returned as FAILED; they never reach the caller, because
        an error response would only make Shopify redeliver the webhook.
        """
        try:
            stmt = self._insert_statement(db, data, policy)
            result = await db.execute(stmt)
            row = result.first()
            await db.commit()
        except Exception as e:
            logger.error(
                f"Failed to record cashback for order {data.order_id}: {e}", exc_info=True)
            try:
                await db.rollback()
            except Exception:
                logger.warning(
                    f"Rollback after failed insert for order {data.order_id} also failed", exc_info=True)
            return RecordOutcome.FAILED

        if row is None:
            # conflict under the ignore policy, nothing was written
            logger.info(f"Order {data.order_id} already recorded, skipping")
            return RecordOutcome.DUPLICATE
        if row.created_at != row.updated_at:
            logger.info(f"Order {data.order_id} replayed, cashback refreshed")
            return RecordOutcome.REFRESHED
        return RecordOutcome.INSERTED

    async def get_by_order_id(self, db: AsyncSession, order_id: str) -> Optional[CashbackEvent]:
        result = await db.execute(
            select(CashbackEvent).where(CashbackEvent.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def list_by_customer_email(self, db: AsyncSession, customer_email: str,
                                     limit: int = 50) -> List[CashbackEvent]:
        result = await db.scalars(
            select(CashbackEvent)
            .where(CashbackEvent.customer_email == customer_email)
            .order_by(CashbackEvent.created_at.desc())
            .limit(limit)
        )
        return list(result.all())


crud_cashback_event = CRUDCashbackEvent()

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from cashback_webhook.crud.cashback_event import crud_cashback_event
from cashback_webhook.models.cashback_event import CashbackEvent
from cashback_webhook.schemas.cashback import CashbackEventCreate, RecordOutcome, ReplayPolicy

SHOP = "lsc-test.myshopify.com"


def make_event(order_id="1001", total="200.00", percent="5", cashback="10.00", email=None):
    return CashbackEventCreate(
        order_id=order_id,
        shop_domain=SHOP,
        customer_email=email,
        currency="EUR",
        total_paid=Decimal(total),
        cashback_percent=Decimal(percent),
        cashback_amount=Decimal(cashback),
        raw={"id": order_id, "total_price": total},
    )


async def count_rows(session, order_id):
    return await session.scalar(
        select(func.count()).select_from(CashbackEvent).where(CashbackEvent.order_id == order_id))


async def test_first_delivery_inserts(db_session):
    outcome = await crud_cashback_event.record(db_session, make_event())
    assert outcome is RecordOutcome.INSERTED

    event = await crud_cashback_event.get_by_order_id(db_session, "1001")
    assert event.total_paid == Decimal("200.00")
    assert event.cashback_percent == Decimal("5")
    assert event.cashback_amount == Decimal("10.00")
    assert event.currency == "EUR"
    assert event.shop_domain == SHOP
    assert event.raw == {"id": "1001", "total_price": "200.00"}
    assert event.created_at is not None


async def test_replay_is_ignored_under_ignore_policy(db_session_factory):
    async with db_session_factory() as session:
        assert await crud_cashback_event.record(session, make_event()) is RecordOutcome.INSERTED
        replay = make_event(total="250.00", cashback="12.50")
        assert await crud_cashback_event.record(session, replay) is RecordOutcome.DUPLICATE

    async with db_session_factory() as session:
        assert await count_rows(session, "1001") == 1
        event = await crud_cashback_event.get_by_order_id(session, "1001")
        assert event.total_paid == Decimal("200.00")
        assert event.cashback_amount == Decimal("10.00")


async def test_replay_refreshes_under_refresh_policy(db_session_factory):
    async with db_session_factory() as session:
        first = await crud_cashback_event.record(session, make_event(), ReplayPolicy.REFRESH)
        assert first is RecordOutcome.INSERTED
        created_at = (await crud_cashback_event.get_by_order_id(session, "1001")).created_at

    async with db_session_factory() as session:
        replay = make_event(total="250.00", cashback="12.50", email="buyer@example.com")
        assert await crud_cashback_event.record(session, replay, ReplayPolicy.REFRESH) is RecordOutcome.REFRESHED

    async with db_session_factory() as session:
        assert await count_rows(session, "1001") == 1
        event = await crud_cashback_event.get_by_order_id(session, "1001")
        assert event.total_paid == Decimal("250.00")
        assert event.cashback_amount == Decimal("12.50")
        assert event.customer_email == "buyer@example.com"
        assert event.created_at == created_at
        assert event.updated_at != created_at


async def test_concurrent_deliveries_of_same_order_write_one_row(db_session_factory):
    async def deliver():
        async with db_session_factory() as session:
            return await crud_cashback_event.record(session, make_event())

    outcomes = await asyncio.gather(*[deliver() for _ in range(5)])

    assert outcomes.count(RecordOutcome.INSERTED) == 1, f"outcomes: {outcomes}"
    async with db_session_factory() as session:
        assert await count_rows(session, "1001") == 1


async def test_storage_failure_is_reported_not_raised():
    db = AsyncMock(spec=AsyncSession)
    db.get_bind.return_value.dialect.name = "postgresql"
    db.execute.side_effect = OperationalError("INSERT", {}, Exception("connection refused"))

    outcome = await crud_cashback_event.record(db, make_event())

    assert outcome is RecordOutcome.FAILED
    db.rollback.assert_awaited_once()
    db.commit.assert_not_awaited()


async def test_unsupported_dialect_is_a_storage_failure():
    db = AsyncMock(spec=AsyncSession)
    db.get_bind.return_value.dialect.name = "mysql"

    assert await crud_cashback_event.record(db, make_event()) is RecordOutcome.FAILED
    db.execute.assert_not_awaited()


async def test_list_by_customer_email(db_session):
    await crud_cashback_event.record(db_session, make_event("1", email="buyer@example.com"))
    await crud_cashback_event.record(db_session, make_event("2", email="buyer@example.com"))
    await crud_cashback_event.record(db_session, make_event("3", email="other@example.com"))

    events = await crud_cashback_event.list_by_customer_email(db_session, "buyer@example.com")

    assert {event.order_id for event in events} == {"1", "2"}


async def test_long_identifiers_and_large_rates_are_stored(db_session):
    order_id = "gid://shopify/Order/" + "9" * 120
    event = make_event(order_id=order_id, total="123456789012345.67", percent="1500.125",
                       cashback="1851995680213467.93")
    event.currency = "XBT-TEST"

    assert await crud_cashback_event.record(db_session, event) is RecordOutcome.INSERTED

    stored = await crud_cashback_event.get_by_order_id(db_session, order_id)
    assert stored.currency == "XBT-TEST"
    assert stored.cashback_percent == Decimal("1500.125")


def test_columns_are_not_length_or_precision_bounded():
    columns = CashbackEvent.__table__.c
    for name in ("order_id", "shop_domain", "customer_email", "currency"):
        assert getattr(columns[name].type, "length", None) is None, name
    for name in ("total_paid", "cashback_percent", "cashback_amount"):
        assert columns[name].type.precision is None, name

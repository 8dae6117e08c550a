# tests/services/test_verify_service.py
from __future__ import annotations

import pytest

from stocktake.core.errors import InvalidInput, InvalidState, NotFound
from stocktake.models.enums import ActivityType
from stocktake.models.stock_item import StockItem
from stocktake.services.count_service import CountService
from stocktake.services.verify_service import VerifyService
from tests.helpers.stocktake import ALICE, ORG, ZONE_RENTAL, ZONE_REPAIRS, ZONE_VAULT, count_events

pytestmark = pytest.mark.grp_count


async def _count(session, seed, sku, qty):
    return await CountService().submit_count(
        session,
        organization_id=ORG,
        session_id=seed.session_id,
        item_id=seed.item(sku),
        counted_qty=qty,
        actor_id=ALICE,
    )


async def _verify(session, seed, sku):
    return await VerifyService().verify(
        session, organization_id=ORG, session_id=seed.session_id, item_id=seed.item(sku), actor_id=ALICE
    )


@pytest.mark.asyncio
async def test_verify_variance_item_keeps_quantities(session, seed):
    counted = await _count(session, seed, "SKU-R1", 12)
    counted_at = counted.last_counted_at

    item = await _verify(session, seed, "SKU-R1")

    assert item.status == "verified"
    assert item.counted_qty == 12
    assert item.variance == 2
    assert item.last_counted_by == "Alice Smith"
    assert item.last_counted_at == counted_at
    assert await count_events(session, session_id=seed.session_id, type=ActivityType.VERIFY) == 1


async def _snapshot(session, seed, sku):
    item = await session.get(StockItem, seed.item(sku))
    verifies = await count_events(session, session_id=seed.session_id, type=ActivityType.VERIFY)
    return (item.status, item.counted_qty, item.variance, verifies)


async def _assert_verify_rejected(session, seed, sku):
    before = await _snapshot(session, seed, sku)
    with pytest.raises(InvalidState):
        await _verify(session, seed, sku)
    # 拒绝后商品与流水都不动
    assert await _snapshot(session, seed, sku) == before


@pytest.mark.asyncio
async def test_verify_pending_item_rejected(session, seed):
    await _assert_verify_rejected(session, seed, "SKU-R1")
    assert await _snapshot(session, seed, "SKU-R1") == ("pending", None, None, 0)


@pytest.mark.asyncio
async def test_verify_counted_item_rejected(session, seed):
    await _count(session, seed, "SKU-R1", 10)
    await _assert_verify_rejected(session, seed, "SKU-R1")
    assert await _snapshot(session, seed, "SKU-R1") == ("counted", 10, 0, 0)


@pytest.mark.asyncio
async def test_verify_twice_rejected(session, seed):
    await _count(session, seed, "SKU-R1", 11)
    await _verify(session, seed, "SKU-R1")
    await _assert_verify_rejected(session, seed, "SKU-R1")
    assert await _snapshot(session, seed, "SKU-R1") == ("verified", 11, 1, 1)


@pytest.mark.asyncio
async def test_bulk_verify_soft_skips_ineligible(session, seed):
    await _count(session, seed, "SKU-R1", 12)  # variance
    await _count(session, seed, "SKU-R2", 5)  # counted

    r = await VerifyService().bulk_update(
        session,
        organization_id=ORG,
        session_id=seed.session_id,
        item_ids=[seed.item("SKU-R1"), seed.item("SKU-R2"), seed.item("SKU-P1"), 999_999],
        actor_id=ALICE,
        verified=True,
    )

    assert r.updated_count == 1
    assert sorted(r.skipped_ids) == sorted([seed.item("SKU-R2"), seed.item("SKU-P1")])
    assert r.missing_ids == [999_999]

    assert (await session.get(StockItem, seed.item("SKU-R1"))).status == "verified"
    assert (await session.get(StockItem, seed.item("SKU-R2"))).status == "counted"
    assert (await session.get(StockItem, seed.item("SKU-P1"))).status == "pending"


@pytest.mark.asyncio
async def test_bulk_requires_ids_and_an_action(session, seed):
    svc = VerifyService()
    with pytest.raises(InvalidInput):
        await svc.bulk_update(session, organization_id=ORG, session_id=seed.session_id, item_ids=[], actor_id=ALICE, verified=True)
    with pytest.raises(InvalidInput):
        await svc.bulk_update(
            session, organization_id=ORG, session_id=seed.session_id, item_ids=[seed.item("SKU-R1")], actor_id=ALICE
        )


@pytest.mark.asyncio
async def test_bulk_all_missing_is_not_found(session, seed):
    with pytest.raises(NotFound):
        await VerifyService().bulk_update(
            session, organization_id=ORG, session_id=seed.session_id, item_ids=[424242], actor_id=ALICE, verified=True
        )


@pytest.mark.asyncio
async def test_bulk_location_change(session, seed):
    r = await VerifyService().bulk_update(
        session,
        organization_id=ORG,
        session_id=seed.session_id,
        item_ids=[seed.item("SKU-P1")],
        actor_id=ALICE,
        location=ZONE_VAULT,
    )
    assert r.updated_count == 1
    assert (await session.get(StockItem, seed.item("SKU-P1"))).location == ZONE_VAULT


@pytest.mark.asyncio
async def test_bulk_location_must_be_known(session, seed):
    with pytest.raises(InvalidInput) as ei:
        await VerifyService().bulk_update(
            session,
            organization_id=ORG,
            session_id=seed.session_id,
            item_ids=[seed.item("SKU-P1")],
            actor_id=ALICE,
            location="Car Park",
        )
    assert ei.value.message == "Invalid location: Car Park"
    assert (await session.get(StockItem, seed.item("SKU-P1"))).location == ZONE_REPAIRS


@pytest.mark.asyncio
async def test_bulk_move_into_same_location_is_skipped(session, seed):
    r = await VerifyService().bulk_update(
        session,
        organization_id=ORG,
        session_id=seed.session_id,
        item_ids=[seed.item("SKU-R1")],
        actor_id=ALICE,
        location=ZONE_RENTAL,
    )
    assert r.updated_count == 0
    assert r.skipped_ids == [seed.item("SKU-R1")]

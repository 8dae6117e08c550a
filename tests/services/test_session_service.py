# tests/services/test_session_service.py
from __future__ import annotations

from datetime import timedelta

import pytest

from stocktake.core.errors import InvalidInput, NotFound, Unauthorized
from stocktake.models.stock_session import StockSession
from stocktake.services.count_service import CountService
from stocktake.services.session_service import DEFAULT_SESSION_NAME, SessionService, require_session
from tests.helpers.stocktake import ALICE, ORG, OTHER_ORG

pytestmark = pytest.mark.grp_session


@pytest.mark.asyncio
async def test_start_defaults(session, seed):
    ss = await session.get(StockSession, seed.session_id)
    assert ss.name == DEFAULT_SESSION_NAME
    assert ss.status == "live"
    assert ss.total_items == 5
    assert ss.total_paused_seconds == 0


@pytest.mark.asyncio
async def test_start_requires_org(session):
    with pytest.raises(Unauthorized):
        await SessionService().start(session, organization_id="")


@pytest.mark.asyncio
async def test_pause_and_resume_accumulates(session, seed):
    svc = SessionService()
    ss = await svc.set_status(session, organization_id=ORG, session_id=seed.session_id, status="paused")
    assert ss.status == "paused"
    assert ss.paused_at is not None

    # 模拟暂停了 90 秒
    ss.paused_at = ss.paused_at - timedelta(seconds=90)
    ss = await svc.set_status(session, organization_id=ORG, session_id=seed.session_id, status="live")
    assert ss.status == "live"
    assert ss.paused_at is None
    assert ss.total_paused_seconds >= 90


@pytest.mark.asyncio
async def test_invalid_status(session, seed):
    with pytest.raises(InvalidInput):
        await SessionService().set_status(session, organization_id=ORG, session_id=seed.session_id, status="archived")


@pytest.mark.asyncio
async def test_get_other_org_is_not_found(session, seed):
    with pytest.raises(NotFound):
        await SessionService().get(session, organization_id=OTHER_ORG, session_id=seed.session_id)


@pytest.mark.asyncio
async def test_require_session(session, seed):
    ss = await require_session(session, organization_id=ORG, session_id=seed.session_id)
    assert ss.id == seed.session_id
    with pytest.raises(Unauthorized):
        await require_session(session, organization_id=OTHER_ORG, session_id=seed.session_id)
    with pytest.raises(Unauthorized):
        await require_session(session, organization_id=ORG, session_id=123456)


@pytest.mark.asyncio
async def test_counts(session, seed):
    count = CountService()
    for sku, qty in (("SKU-R1", 10), ("SKU-R2", 4), ("SKU-P1", 3)):
        await count.submit_count(
            session,
            organization_id=ORG,
            session_id=seed.session_id,
            item_id=seed.item(sku),
            counted_qty=qty,
            actor_id=ALICE,
        )

    c = await SessionService().counts(session, organization_id=ORG)
    assert (c.total, c.counted, c.variance, c.verified) == (5, 3, 1, 0)

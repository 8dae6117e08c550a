# stocktake/services/activity_ledger.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.config import get_settings
from stocktake.db.base import utcnow
from stocktake.models.enums import ActivityType
from stocktake.models.stock_activity import StockActivity

log = logging.getLogger("stocktake.activity")


class ActivityLedger:
    """
    盘点动态（只追加）：
    - append：插入一条，不做任何 update/delete
    - exists：按 (session_id, type, zone) 判存在（zone 完成去重用）
    - list_recent：按 (created_at, id) 倒序，id 兜底同刻事件的插入顺序
    """

    async def append(
        self,
        session: AsyncSession,
        *,
        organization_id: Optional[str],
        session_id: Optional[int],
        type: ActivityType,
        message: str,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
        zone: Optional[str] = None,
        item_id: Optional[int] = None,
    ) -> StockActivity:
        ev = StockActivity(
            organization_id=organization_id,
            session_id=session_id,
            type=ActivityType(type).value,
            message=message,
            user_id=user_id,
            user_name=user_name,
            zone=zone or None,
            item_id=item_id,
            created_at=utcnow(),
        )
        session.add(ev)
        await session.flush()
        log.debug("activity %s#%s session=%s zone=%s", ev.type, ev.id, session_id, ev.zone)
        return ev

    async def exists(
        self,
        session: AsyncSession,
        *,
        session_id: int,
        type: ActivityType,
        zone: str,
    ) -> bool:
        row = (
            await session.execute(
                select(StockActivity.id)
                .where(StockActivity.session_id == session_id)
                .where(StockActivity.type == ActivityType(type).value)
                .where(StockActivity.zone == zone)
                .limit(1)
            )
        ).first()
        return row is not None

    async def list_recent(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        limit: Optional[int] = None,
        session_id: Optional[int] = None,
    ) -> List[StockActivity]:
        settings = get_settings()
        n = settings.ACTIVITY_FEED_LIMIT if limit is None else int(limit)
        n = max(1, min(n, settings.ACTIVITY_FEED_MAX))

        stmt = select(StockActivity).where(StockActivity.organization_id == organization_id)
        if session_id is not None:
            stmt = stmt.where(StockActivity.session_id == session_id)
        stmt = stmt.order_by(StockActivity.created_at.desc(), StockActivity.id.desc()).limit(n)
        return list((await session.execute(stmt)).scalars().all())


def format_relative(ts: datetime, now: Optional[datetime] = None) -> str:
    """动态流时间：刚刚 / N 分钟前 / N 小时前 / 超过一天给 HH:MM。"""
    now = now or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        # SQLite 读回来是 naive，入库时一律 UTC
        ts = ts.replace(tzinfo=timezone.utc)
    diff = (now - ts).total_seconds()
    if diff < 60:
        return "Just now"
    if diff < 3600:
        return f"{int(diff // 60)}m ago"
    if diff < 86400:
        return f"{int(diff // 3600)}h ago"
    return ts.strftime("%H:%M")

# stocktake/services/team_stats.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.errors import InvalidInput
from stocktake.models.enums import ActivityType, ItemStatus
from stocktake.models.stock_activity import StockActivity
from stocktake.models.stock_item import StockItem
from stocktake.services.activity_ledger import format_relative
from stocktake.services.identity import IdentityProvider, ProfileIdentityProvider
from stocktake.services.zone_assignment import ZoneAssignmentService

log = logging.getLogger("stocktake.team")

# 计入“盘过”的动态类型；join / zone_complete 不算
COUNTING_ACTIVITY_TYPES = (ActivityType.COUNT.value, ActivityType.VARIANCE.value, ActivityType.VERIFY.value)


@dataclass
class CounterStat:
    user_id: str
    user_name: str
    zone_code: Optional[str]
    items_counted: int
    last_active_at: Optional[datetime]
    last_active: Optional[str]


class TeamStats:
    """
    按操作人聚合盘点动态：
      - 有分配 zone 但还没动手的人也列出来（items_counted = 0）
      - 排序：items_counted 倒序，再按 user_id
    只读。
    """

    def __init__(self, identity: Optional[IdentityProvider] = None) -> None:
        self.identity = identity or ProfileIdentityProvider()

    async def counter_stats(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        session_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[CounterStat]:
        stmt = (
            select(StockActivity.user_id, func.count(StockActivity.id), func.max(StockActivity.created_at))
            .where(StockActivity.organization_id == organization_id)
            .where(StockActivity.type.in_(COUNTING_ACTIVITY_TYPES))
            .where(StockActivity.user_id.is_not(None))
            .group_by(StockActivity.user_id)
        )
        if session_id is not None:
            stmt = stmt.where(StockActivity.session_id == session_id)
        activity = {uid: (int(n), last) for uid, n, last in (await session.execute(stmt)).all()}

        zone_by_user: Dict[str, str] = {}
        for a in await ZoneAssignmentService().list_assignments(session, organization_id=organization_id):
            # 一人多 zone 时取 zone_code 最小的一个
            zone_by_user.setdefault(a.user_id, a.zone_code)

        out: List[CounterStat] = []
        for uid in set(activity) | set(zone_by_user):
            n, last = activity.get(uid, (0, None))
            out.append(
                CounterStat(
                    user_id=uid,
                    user_name=await self.identity.display_name(session, uid),
                    zone_code=zone_by_user.get(uid),
                    items_counted=n,
                    last_active_at=last,
                    last_active=format_relative(last, now) if last is not None else None,
                )
            )
        out.sort(key=lambda s: (-s.items_counted, s.user_id))
        log.debug("team stats: org=%s users=%d", organization_id, len(out))
        return out


async def list_counters(session: AsyncSession, *, organization_id: str, status: Optional[str] = None) -> List[str]:
    """盘过货的人（last_counted_by 去重、升序）；status 为 all 或空时不过滤。"""
    stmt = (
        select(StockItem.last_counted_by)
        .where(StockItem.organization_id == organization_id)
        .where(StockItem.last_counted_by.is_not(None))
        .distinct()
        .order_by(StockItem.last_counted_by)
    )
    st = (status or "").strip()
    if st and st != "all":
        try:
            stmt = stmt.where(StockItem.status == ItemStatus(st).value)
        except ValueError:
            raise InvalidInput(f"invalid item status: {st!r}") from None
    rows = (await session.execute(stmt)).scalars().all()
    return [r for r in rows if r and r.strip()]

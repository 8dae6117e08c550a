# stocktake/services/zone_completion.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.config import get_settings
from stocktake.models.enums import COVERED_STATUSES, ActivityType, ItemStatus
from stocktake.models.stock_item import StockItem
from stocktake.models.zone_assignment import ZoneAssignment
from stocktake.services.activity_ledger import ActivityLedger

log = logging.getLogger("stocktake.zone")


@dataclass
class ZoneCoverage:
    zone: str
    total: int
    covered: int
    variances: int = 0

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.covered >= self.total


@dataclass
class ZoneProgress:
    zone_code: str
    name: str
    total_items: int
    counted_items: int
    variances: int
    assignee_id: Optional[str]


def zone_display_name(zone: str) -> str:
    return zone.split("/")[-1] or zone


class ZoneCompletionDetector:
    """
    zone 完成检测（每次计数/核准后顺带跑一次，不是后台扫描）：
      total > 0 且 已盘(counted/variance/verified) ≥ total，
      且本会话该 zone 尚无 zone_complete → 追加一条。

    并发越线时两边都可能通过存在性预检；真正的唯一性由
    uq_stock_activity_zone_complete 部分唯一索引保证，插入冲突 = 已播报。
    """

    def __init__(self, ledger: Optional[ActivityLedger] = None) -> None:
        self.ledger = ledger or ActivityLedger()

    async def coverage(self, session: AsyncSession, *, organization_id: str, zone: str) -> ZoneCoverage:
        row = (
            await session.execute(
                select(
                    func.count(StockItem.id),
                    func.coalesce(func.sum(case((StockItem.status.in_(COVERED_STATUSES), 1), else_=0)), 0),
                    func.coalesce(
                        func.sum(case((StockItem.status == ItemStatus.VARIANCE.value, 1), else_=0)), 0
                    ),
                )
                .where(StockItem.organization_id == organization_id)
                .where(StockItem.location == zone)
            )
        ).one()
        return ZoneCoverage(zone=zone, total=int(row[0]), covered=int(row[1]), variances=int(row[2]))

    async def check_zone_completion(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        session_id: int,
        zone: Optional[str],
    ) -> bool:
        if not zone:
            return False

        cov = await self.coverage(session, organization_id=organization_id, zone=zone)
        if not cov.complete:
            return False

        if await self.ledger.exists(
            session, session_id=session_id, type=ActivityType.ZONE_COMPLETE, zone=zone
        ):
            return False

        return await self.emit_once(session, organization_id=organization_id, session_id=session_id, zone=zone)

    async def emit_once(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        session_id: int,
        zone: str,
    ) -> bool:
        """在保存点里插入 zone_complete；唯一索引冲突只回滚保存点，外层事务不受影响。"""
        try:
            async with session.begin_nested():
                await self.ledger.append(
                    session,
                    organization_id=organization_id,
                    session_id=session_id,
                    type=ActivityType.ZONE_COMPLETE,
                    message=f"completed zone {zone}",
                    zone=zone,
                )
        except IntegrityError:
            log.info("zone_complete already recorded: session=%s zone=%s", session_id, zone)
            return False

        log.info("zone complete: session=%s zone=%s", session_id, zone)
        return True

    async def zone_progress(self, session: AsyncSession, *, organization_id: str) -> List[ZoneProgress]:
        """
        各 zone 进度：规范库位在前（即使没有商品），其余库位按名字排序追加。
        """
        rows = (
            await session.execute(
                select(
                    StockItem.location,
                    func.count(StockItem.id),
                    func.coalesce(func.sum(case((StockItem.status.in_(COVERED_STATUSES), 1), else_=0)), 0),
                    func.coalesce(
                        func.sum(case((StockItem.status == ItemStatus.VARIANCE.value, 1), else_=0)), 0
                    ),
                )
                .where(StockItem.organization_id == organization_id)
                .where(StockItem.location != "")
                .group_by(StockItem.location)
            )
        ).all()
        by_zone: Dict[str, ZoneCoverage] = {
            r[0]: ZoneCoverage(zone=r[0], total=int(r[1]), covered=int(r[2]), variances=int(r[3])) for r in rows
        }

        assignees = {
            a.zone_code: a.user_id
            for a in (
                await session.execute(
                    select(ZoneAssignment).where(ZoneAssignment.organization_id == organization_id)
                )
            ).scalars()
        }

        canonical = list(get_settings().CANONICAL_LOCATIONS)
        extra = sorted(z for z in by_zone if z not in set(canonical))

        out: List[ZoneProgress] = []
        for zone in canonical + extra:
            cov = by_zone.get(zone) or ZoneCoverage(zone=zone, total=0, covered=0)
            out.append(
                ZoneProgress(
                    zone_code=zone,
                    name=zone_display_name(zone),
                    total_items=cov.total,
                    counted_items=cov.covered,
                    variances=cov.variances,
                    assignee_id=assignees.get(zone),
                )
            )
        return out

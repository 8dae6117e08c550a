# stocktake/services/session_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.errors import InvalidInput, NotFound, Unauthorized
from stocktake.db.base import utcnow
from stocktake.models.enums import COVERED_STATUSES, ItemStatus, SessionStatus
from stocktake.models.stock_item import StockItem
from stocktake.models.stock_session import StockSession

log = logging.getLogger("stocktake.session")

DEFAULT_SESSION_NAME = "Q1 Full Stock Take"


@dataclass
class SessionCounts:
    total: int
    counted: int
    variance: int
    verified: int


async def require_session(
    session: AsyncSession,
    *,
    organization_id: Optional[str],
    session_id: Optional[int],
) -> StockSession:
    """
    调用方显式给出 (organization_id, session_id)，不在这里“取最新一场”。
    任一缺失或会话不属于该组织 → Unauthorized。
    """
    if not organization_id:
        raise Unauthorized("organization required")
    if session_id is None:
        raise Unauthorized("session required")
    ss = await session.get(StockSession, session_id)
    if ss is None or ss.organization_id != organization_id:
        raise Unauthorized(f"session {session_id} not available for this organization")
    return ss


class SessionService:
    """盘点会话生命周期：开始 / 暂停 / 恢复 / 完成 + 汇总计数。"""

    async def start(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        name: Optional[str] = None,
        location: Optional[str] = None,
    ) -> StockSession:
        if not organization_id:
            raise Unauthorized("organization required")
        total = await session.scalar(
            select(func.count(StockItem.id)).where(StockItem.organization_id == organization_id)
        )
        ss = StockSession(
            organization_id=organization_id,
            name=(name or "").strip() or DEFAULT_SESSION_NAME,
            status=SessionStatus.LIVE.value,
            location=location,
            total_items=int(total or 0),
            started_at=utcnow(),
        )
        session.add(ss)
        await session.flush()
        log.info("session started: id=%s org=%s items=%s", ss.id, organization_id, ss.total_items)
        return ss

    async def get(self, session: AsyncSession, *, organization_id: str, session_id: int) -> StockSession:
        ss = await session.get(StockSession, session_id)
        if ss is None or ss.organization_id != organization_id:
            raise NotFound(f"session {session_id} not found")
        return ss

    async def set_status(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        session_id: int,
        status: str,
    ) -> StockSession:
        try:
            target = SessionStatus(status)
        except ValueError:
            raise InvalidInput(f"invalid session status: {status!r}") from None

        ss = await self.get(session, organization_id=organization_id, session_id=session_id)
        now = utcnow()

        if target is SessionStatus.PAUSED:
            ss.paused_at = now
        elif target is SessionStatus.LIVE:
            if ss.paused_at is not None:
                paused_at = ss.paused_at
                if paused_at.tzinfo is None:
                    paused_at = paused_at.replace(tzinfo=now.tzinfo)
                ss.total_paused_seconds = int(ss.total_paused_seconds or 0) + int(
                    (now - paused_at).total_seconds()
                )
            ss.paused_at = None

        prev = ss.status
        ss.status = target.value
        await session.flush()
        log.info("session %s: %s -> %s", ss.id, prev, ss.status)
        return ss

    async def counts(self, session: AsyncSession, *, organization_id: str) -> SessionCounts:
        row = (
            await session.execute(
                select(
                    func.count(StockItem.id),
                    func.coalesce(func.sum(case((StockItem.status.in_(COVERED_STATUSES), 1), else_=0)), 0),
                    func.coalesce(
                        func.sum(case((StockItem.status == ItemStatus.VARIANCE.value, 1), else_=0)), 0
                    ),
                    func.coalesce(
                        func.sum(case((StockItem.status == ItemStatus.VERIFIED.value, 1), else_=0)), 0
                    ),
                ).where(StockItem.organization_id == organization_id)
            )
        ).one()
        return SessionCounts(total=int(row[0]), counted=int(row[1]), variance=int(row[2]), verified=int(row[3]))

# stocktake/services/zone_assignment.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.models.enums import ActivityType
from stocktake.models.zone_assignment import ZoneAssignment
from stocktake.services.activity_ledger import ActivityLedger
from stocktake.services.identity import IdentityProvider, ProfileIdentityProvider
from stocktake.services.session_service import require_session

log = logging.getLogger("stocktake.zone")


@dataclass
class AssignmentIn:
    zone_code: str
    user_id: Optional[str]  # 空 = 取消分配


class ZoneAssignmentService:
    """zone 分配：新建 / 换人时追加 join 动态；user_id 为空则删除分配。"""

    def __init__(self, identity: Optional[IdentityProvider] = None, ledger: Optional[ActivityLedger] = None) -> None:
        self.identity = identity or ProfileIdentityProvider()
        self.ledger = ledger or ActivityLedger()

    async def list_assignments(self, session: AsyncSession, *, organization_id: str) -> List[ZoneAssignment]:
        return list(
            (
                await session.execute(
                    select(ZoneAssignment)
                    .where(ZoneAssignment.organization_id == organization_id)
                    .order_by(ZoneAssignment.zone_code)
                )
            )
            .scalars()
            .all()
        )

    async def assign(
        self,
        session: AsyncSession,
        *,
        organization_id: Optional[str],
        session_id: Optional[int],
        assignments: Iterable[AssignmentIn],
    ) -> List[ZoneAssignment]:
        ss = await require_session(session, organization_id=organization_id, session_id=session_id)
        org = ss.organization_id

        for a in assignments:
            zone = (a.zone_code or "").strip()
            if not zone:
                continue
            target = (a.user_id or "").strip() or None

            existing = (
                await session.execute(
                    select(ZoneAssignment)
                    .where(ZoneAssignment.organization_id == org)
                    .where(ZoneAssignment.zone_code == zone)
                )
            ).scalar_one_or_none()

            if target is None:
                if existing is not None:
                    await session.delete(existing)
                    log.info("zone %s unassigned", zone)
                continue

            if existing is not None and existing.user_id == target:
                continue
            if existing is not None:
                existing.user_id = target
            else:
                session.add(ZoneAssignment(organization_id=org, zone_code=zone, user_id=target))

            name = await self.identity.display_name(session, target)
            await self.ledger.append(
                session,
                organization_id=org,
                session_id=ss.id,
                type=ActivityType.JOIN,
                message=f"joined zone {zone}",
                user_id=target,
                user_name=name,
                zone=zone,
            )
            log.info("zone %s assigned to %s", zone, name)

        await session.flush()
        return await self.list_assignments(session, organization_id=org)

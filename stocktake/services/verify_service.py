# stocktake/services/verify_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.config import get_settings
from stocktake.core.errors import InvalidInput, InvalidState, NotFound
from stocktake.models.enums import ActivityType, ItemStatus
from stocktake.models.stock_item import StockItem
from stocktake.services.activity_ledger import ActivityLedger
from stocktake.services.count_service import load_item
from stocktake.services.identity import IdentityProvider, ProfileIdentityProvider
from stocktake.services.session_service import require_session
from stocktake.services.zone_completion import ZoneCompletionDetector

log = logging.getLogger("stocktake.verify")


@dataclass
class BulkResult:
    updated_count: int = 0
    skipped_ids: List[int] = field(default_factory=list)  # 存在但前置条件不满足
    missing_ids: List[int] = field(default_factory=list)  # 不存在 / 不属于本组织


class VerifyService:
    """
    差异核准：只有 status == variance 的商品能被核准。
    核准不重写数量（counted_qty / variance / last_counted_* 原样保留），
    只把差异“认下来”。
    """

    def __init__(
        self,
        identity: Optional[IdentityProvider] = None,
        ledger: Optional[ActivityLedger] = None,
        zones: Optional[ZoneCompletionDetector] = None,
    ) -> None:
        self.identity = identity or ProfileIdentityProvider()
        self.ledger = ledger or ActivityLedger()
        self.zones = zones or ZoneCompletionDetector(self.ledger)

    async def _mark_verified(
        self,
        session: AsyncSession,
        item: StockItem,
        *,
        organization_id: str,
        session_id: int,
        actor_id: str,
        actor_name: str,
    ) -> None:
        item.status = ItemStatus.VERIFIED.value
        await session.flush()
        await self.ledger.append(
            session,
            organization_id=organization_id,
            session_id=session_id,
            type=ActivityType.VERIFY,
            message=f"verified variance on {item.name}",
            user_id=actor_id,
            user_name=actor_name,
            zone=item.location,
            item_id=item.id,
        )

    async def verify(
        self,
        session: AsyncSession,
        *,
        organization_id: Optional[str],
        session_id: Optional[int],
        item_id: int,
        actor_id: str,
    ) -> StockItem:
        ss = await require_session(session, organization_id=organization_id, session_id=session_id)
        item = await load_item(session, organization_id=ss.organization_id, item_id=item_id)

        if item.status != ItemStatus.VARIANCE.value:
            log.warning("verify rejected: item=%s status=%s", item.id, item.status)
            raise InvalidState(
                "only variance items can be verified",
                context={"item_id": item.id, "status": item.status},
            )

        actor_name = await self.identity.display_name(session, actor_id)
        await self._mark_verified(
            session,
            item,
            organization_id=ss.organization_id,
            session_id=ss.id,
            actor_id=actor_id,
            actor_name=actor_name,
        )
        await self.zones.check_zone_completion(
            session, organization_id=ss.organization_id, session_id=ss.id, zone=item.location
        )
        log.info("verified item=%s sku=%s by=%s", item.id, item.sku, actor_name)
        return item

    async def _validate_location(self, session: AsyncSession, *, organization_id: str, location: str) -> str:
        loc = location.strip()
        if loc in get_settings().CANONICAL_LOCATIONS:
            return loc
        in_use = (
            await session.execute(
                select(StockItem.id)
                .where(StockItem.organization_id == organization_id)
                .where(StockItem.location == loc)
                .limit(1)
            )
        ).first()
        if in_use is None:
            raise InvalidInput(f"Invalid location: {loc}", context={"location": loc})
        return loc

    async def bulk_update(
        self,
        session: AsyncSession,
        *,
        organization_id: Optional[str],
        session_id: Optional[int],
        item_ids: Iterable[int],
        actor_id: str,
        verified: bool = False,
        location: Optional[str] = None,
    ) -> BulkResult:
        """
        批量核准 / 批量改库位：
        - 单个商品不满足核准前置条件 → 软跳过（记入 skipped_ids），不整批失败
        - 调用方必须看 updated_count 判断是否部分生效
        """
        ids = list(dict.fromkeys(int(i) for i in item_ids))
        if not ids:
            raise InvalidInput("item_ids must not be empty")
        target_location = (location or "").strip() or None
        if not verified and target_location is None:
            raise InvalidInput("at least one of location or verified required")

        ss = await require_session(session, organization_id=organization_id, session_id=session_id)
        org = ss.organization_id

        items = list(
            (
                await session.execute(
                    select(StockItem)
                    .where(StockItem.organization_id == org)
                    .where(StockItem.id.in_(ids))
                    .order_by(StockItem.id)
                )
            )
            .scalars()
            .all()
        )
        found = {it.id for it in items}
        result = BulkResult(missing_ids=[i for i in ids if i not in found])
        if not items:
            raise NotFound("no valid items found", context={"missing_ids": result.missing_ids})

        if target_location is not None:
            target_location = await self._validate_location(session, organization_id=org, location=target_location)

        actor_name = await self.identity.display_name(session, actor_id)
        touched_zones: List[str] = []

        for item in items:
            changed = False
            if target_location is not None and item.location != target_location:
                if item.location not in touched_zones:
                    touched_zones.append(item.location)
                item.location = target_location
                changed = True

            if verified and item.status == ItemStatus.VARIANCE.value:
                await self._mark_verified(
                    session,
                    item,
                    organization_id=org,
                    session_id=ss.id,
                    actor_id=actor_id,
                    actor_name=actor_name,
                )
                changed = True

            if not changed:
                result.skipped_ids.append(item.id)
                continue

            if item.location not in touched_zones:
                touched_zones.append(item.location)
            result.updated_count += 1

        await session.flush()
        for zone in touched_zones:
            await self.zones.check_zone_completion(session, organization_id=org, session_id=ss.id, zone=zone)

        log.info(
            "bulk update by=%s verified=%s location=%r updated=%s skipped=%s missing=%s",
            actor_name,
            verified,
            target_location,
            result.updated_count,
            len(result.skipped_ids),
            len(result.missing_ids),
        )
        return result

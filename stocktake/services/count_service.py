# stocktake/services/count_service.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.errors import InvalidInput, InvalidState, NotFound
from stocktake.db.base import utcnow
from stocktake.models.enums import ActivityType, ItemStatus, SessionStatus
from stocktake.models.stock_item import StockItem
from stocktake.services.activity_ledger import ActivityLedger
from stocktake.services.barcode import BarcodeInvalid, validate_barcode
from stocktake.services.identity import IdentityProvider, ProfileIdentityProvider
from stocktake.services.session_service import require_session
from stocktake.services.zone_completion import ZoneCompletionDetector

log = logging.getLogger("stocktake.count")


def derive_status(variance: int) -> ItemStatus:
    return ItemStatus.COUNTED if variance == 0 else ItemStatus.VARIANCE


def count_message(item_name: str, counted_qty: int, variance: int) -> str:
    if variance == 0:
        return f"counted {counted_qty} for {item_name}"
    sign = "+" if variance > 0 else ""
    return f"flagged variance on {item_name} ({sign}{variance})"


def check_counted_qty(value: object) -> int:
    # bool 是 int 的子类，True 不能当 1 件
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput("counted quantity must be a non-negative integer", context={"counted_qty": value})
    if value < 0:
        raise InvalidInput("counted quantity must be a non-negative integer", context={"counted_qty": value})
    return value


async def load_item(session: AsyncSession, *, organization_id: str, item_id: int) -> StockItem:
    item = await session.get(StockItem, item_id)
    if item is None or item.organization_id != organization_id:
        raise NotFound(f"item {item_id} not found")
    return item


class CountService:
    """
    计数提交（对账引擎）：

      1) variance = counted - expected
      2) status   = counted（variance == 0）| variance
      3) 写 counted_qty / variance / status / last_counted_by / last_counted_at
      4) 追加一条 count | variance 动态（带 zone 与 session_id）
      5) 重新判定该 zone 是否完成

    不控事务：全部写入在调用方的同一事务里，任何一步失败整体回滚。
    同一商品并发提交：后写覆盖（无 version 校验）。需要更强保证时
    加 version 列，不一致时抛 Conflict。
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

    async def submit_count(
        self,
        session: AsyncSession,
        *,
        organization_id: Optional[str],
        session_id: Optional[int],
        item_id: int,
        counted_qty: int,
        actor_id: str,
        captured_barcode: Optional[str] = None,
        barcode_format: Optional[str] = None,
    ) -> StockItem:
        qty = check_counted_qty(counted_qty)

        if captured_barcode is not None:
            checked = validate_barcode(captured_barcode, barcode_format)
            if isinstance(checked, BarcodeInvalid):
                log.warning("count rejected: item=%s barcode=%r reason=%s", item_id, captured_barcode, checked.reason)
                raise InvalidInput(
                    checked.reason,
                    context={
                        "barcode": captured_barcode,
                        "format": checked.kind,
                        "expected_check_digit": checked.expected_check_digit,
                    },
                    next_actions=[{"action": "rescan", "label": "Rescan barcode"}],
                )

        ss = await require_session(session, organization_id=organization_id, session_id=session_id)
        if ss.status != SessionStatus.LIVE.value:
            raise InvalidState(
                "counting is disabled when session is paused or completed",
                context={"session_id": ss.id, "session_status": ss.status},
            )

        item = await load_item(session, organization_id=ss.organization_id, item_id=item_id)
        actor_name = await self.identity.display_name(session, actor_id)

        variance = qty - int(item.expected_qty)
        status = derive_status(variance)
        prev_status = item.status

        item.counted_qty = qty
        item.variance = variance
        item.status = status.value
        item.last_counted_by = actor_name
        item.last_counted_at = utcnow()
        await session.flush()

        await self.ledger.append(
            session,
            organization_id=ss.organization_id,
            session_id=ss.id,
            type=ActivityType.COUNT if variance == 0 else ActivityType.VARIANCE,
            message=count_message(item.name, qty, variance),
            user_id=actor_id,
            user_name=actor_name,
            zone=item.location,
            item_id=item.id,
        )

        await self.zones.check_zone_completion(
            session, organization_id=ss.organization_id, session_id=ss.id, zone=item.location
        )

        log.info(
            "count item=%s sku=%s by=%s qty=%s expected=%s %s -> %s",
            item.id,
            item.sku,
            actor_name,
            qty,
            item.expected_qty,
            prev_status,
            item.status,
        )
        return item

# stocktake/services/item_catalog.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.errors import InvalidInput
from stocktake.models.enums import ItemStatus
from stocktake.models.stock_item import StockItem

log = logging.getLogger("stocktake.catalog")


@dataclass
class CatalogLoadResult:
    created: List[StockItem]
    skipped_skus: List[str]


def _opt(row: Mapping[str, object], key: str) -> Optional[str]:
    v = row.get(key)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


class ItemCatalog:
    """
    会话开始时从外部目录装载盘点行：一律 pending，counted/variance 为空。
    sku 去空白；同组织已存在的 sku 跳过（不覆盖基线）。
    """

    async def load_items(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        rows: Iterable[Mapping[str, object]],
    ) -> CatalogLoadResult:
        existing: Set[str] = set(
            (
                await session.execute(select(StockItem.sku).where(StockItem.organization_id == organization_id))
            )
            .scalars()
            .all()
        )

        created: List[StockItem] = []
        skipped: List[str] = []
        for row in rows:
            sku = _opt(row, "sku")
            name = _opt(row, "name")
            location = _opt(row, "location")
            if not sku or not name or not location:
                raise InvalidInput("catalog row requires sku, name and location", context={"row": dict(row)})
            if sku in existing:
                skipped.append(sku)
                continue

            try:
                expected = int(row.get("expected_qty") or 0)
            except (TypeError, ValueError):
                raise InvalidInput(f"invalid expected_qty for {sku}") from None
            if expected < 0:
                raise InvalidInput(f"expected_qty must be >= 0 for {sku}")

            item = StockItem(
                organization_id=organization_id,
                sku=sku,
                name=name,
                barcode=_opt(row, "barcode"),
                expected_qty=expected,
                location=location,
                category=_opt(row, "category"),
                warehouse=_opt(row, "warehouse"),
                uom=_opt(row, "uom"),
                supplier=_opt(row, "supplier"),
                status=ItemStatus.PENDING.value,
            )
            session.add(item)
            existing.add(sku)
            created.append(item)

        await session.flush()
        log.info("catalog load org=%s created=%s skipped=%s", organization_id, len(created), len(skipped))
        return CatalogLoadResult(created=created, skipped_skus=skipped)

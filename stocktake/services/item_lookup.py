# stocktake/services/item_lookup.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocktake.core.config import get_settings
from stocktake.models.stock_item import StockItem
from stocktake.services.barcode import UPC_E, upce_to_upca

_RE_NUMERIC_CODE = re.compile(r"^\d{8,13}$")
_RE_LINEAR_CODE = re.compile(r"^[0-9A-Za-z\-]+$")


def looks_like_barcode(s: str) -> bool:
    settings = get_settings()
    if _RE_NUMERIC_CODE.match(s):
        return True
    return settings.BARCODE_MIN_LEN <= len(s) <= settings.BARCODE_MAX_LEN and bool(_RE_LINEAR_CODE.match(s))


def barcode_variants(code: str, fmt: Optional[str] = None) -> List[str]:
    """
    同一商品的等价条码写法：原样；UPC-A 与 EAN-13（补前导 0）互通；UPC-E 展开成 UPC-A。
    """
    s = code.strip()
    out = [s]
    if s.isdigit():
        if len(s) == 12:
            out.append("0" + s)
        elif len(s) == 13 and s.startswith("0"):
            out.append(s[1:])
        elif len(s) == 8 and (fmt is None or fmt.upper() == UPC_E):
            upca = upce_to_upca(s)
            if upca:
                out.extend([upca, "0" + upca])
    return list(dict.fromkeys(out))


@dataclass
class LookupResult:
    query: str
    matches: List[StockItem] = field(default_factory=list)
    exact: bool = False  # 第一条是否条码精确命中

    @property
    def unique(self) -> Optional[StockItem]:
        return self.matches[0] if len(self.matches) == 1 else None


class ItemLookup:
    """
    扫码 / 输入 → 候选商品（0、1 或多条）：
      1) 像条码：先按条码精确匹配（含等价写法）
      2) 再做 sku / name（≥2 字符时加 barcode / category / supplier）不区分大小写的包含匹配
    精确命中永远排在前面。只读。
    """

    async def lookup(
        self,
        session: AsyncSession,
        *,
        organization_id: str,
        query: str,
        barcode_format: Optional[str] = None,
        limit: int = 20,
    ) -> LookupResult:
        q = (query or "").strip()
        result = LookupResult(query=q)
        if not q:
            return result

        base = select(StockItem).where(StockItem.organization_id == organization_id)

        exact: List[StockItem] = []
        if len(q) >= 2 and looks_like_barcode(q):
            exact = list(
                (
                    await session.execute(
                        base.where(StockItem.barcode.in_(barcode_variants(q, barcode_format))).order_by(
                            StockItem.id
                        )
                    )
                )
                .scalars()
                .all()
            )

        # autoescape：用户输入里的 % _ 按字面匹配
        needle = q.lower()
        conds = [
            func.lower(StockItem.sku).contains(needle, autoescape=True),
            func.lower(StockItem.name).contains(needle, autoescape=True),
        ]
        if len(q) >= 2:
            conds += [
                func.lower(StockItem.barcode).contains(needle, autoescape=True),
                func.lower(StockItem.category).contains(needle, autoescape=True),
                func.lower(StockItem.supplier).contains(needle, autoescape=True),
            ]
        fuzzy = list(
            (
                await session.execute(
                    base.where(or_(*conds)).order_by(StockItem.location, StockItem.name, StockItem.id).limit(limit)
                )
            )
            .scalars()
            .all()
        )

        seen = set()
        for it in exact + fuzzy:
            if it.id in seen:
                continue
            seen.add(it.id)
            result.matches.append(it)
        result.matches = result.matches[:limit]
        result.exact = bool(exact)
        return result

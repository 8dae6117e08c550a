# stocktake/models/stock_item.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stocktake.db.base import Base, BigIntPK, utcnow
from stocktake.models.enums import ItemStatus


class StockItem(Base):
    """
    盘点商品行（一次盘点会话内的基线 + 实盘结果）。

    状态不变式：
    - pending   ⇔ counted_qty IS NULL
    - counted   ⇔ counted_qty 有值 且 variance = 0
    - variance  ⇔ counted_qty 有值 且 variance ≠ 0
    - verified  只能由 variance 经显式核准得到
    """

    __tablename__ = "stock_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    sku: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    barcode: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)

    expected_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    counted_qty: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    variance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    location: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    warehouse: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    uom: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    supplier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(Text, nullable=False, default=ItemStatus.PENDING.value)

    # 只在“计数提交”时成对写入；核准不动
    last_counted_by: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_counted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("organization_id", "sku", name="uq_stock_items_org_sku"),
        CheckConstraint(
            "status IN ('pending','counted','variance','verified')",
            name="ck_stock_items_status",
        ),
        CheckConstraint("expected_qty >= 0", name="ck_stock_items_expected_nonneg"),
        Index("ix_stock_items_org_location_status", "organization_id", "location", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<StockItem id={self.id} sku={self.sku!r} zone={self.location!r} "
            f"status={self.status} counted={self.counted_qty} expected={self.expected_qty}>"
        )

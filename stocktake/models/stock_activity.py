# stocktake/models/stock_activity.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from stocktake.db.base import Base, BigIntPK, utcnow


class StockActivity(Base):
    """
    盘点动态（append-only）：count / variance / verify / join / zone_complete。

    zone_complete 以 (session_id, zone) 部分唯一索引兜底：
    同一会话同一 zone 最多一条，并发越线时插入冲突即视为“已播报”。
    """

    __tablename__ = "stock_activity"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    organization_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True, index=True)
    session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("stock_sessions.id", ondelete="SET NULL"),
        nullable=True,
    )

    type: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # 系统事件无操作人
    user_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    user_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    zone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    item_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("stock_items.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "type IN ('count','variance','verify','join','zone_complete')",
            name="ck_stock_activity_type",
        ),
        Index("ix_stock_activity_org_time", "organization_id", "created_at", "id"),
        Index("ix_stock_activity_session_type_zone", "session_id", "type", "zone"),
        Index(
            "uq_stock_activity_zone_complete",
            "session_id",
            "zone",
            unique=True,
            postgresql_where=text("type = 'zone_complete'"),
            sqlite_where=text("type = 'zone_complete'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<StockActivity id={self.id} type={self.type} zone={self.zone!r} session={self.session_id}>"

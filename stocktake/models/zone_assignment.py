# stocktake/models/zone_assignment.py
from __future__ import annotations

from sqlalchemy import Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stocktake.db.base import Base, BigIntPK


class ZoneAssignment(Base):
    """zone → 负责人（每个组织每个 zone 至多一人）。"""

    __tablename__ = "zone_assignments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(Text, nullable=False)
    zone_code: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (UniqueConstraint("organization_id", "zone_code", name="uq_zone_assignments_org_zone"),)

# stocktake/db/base.py
from __future__ import annotations

import importlib
import logging
from datetime import datetime, timezone

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("stocktake.models")


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


MODEL_MODULES = (
    "stocktake.models.stock_session",
    "stocktake.models.stock_item",
    "stocktake.models.stock_activity",
    "stocktake.models.user_profile",
    "stocktake.models.zone_assignment",
    "stocktake.models.stock_issue",
)

_INITIALIZED: bool = False  # 防重复初始化


def init_models(*, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射（Alembic / create_all 之前调用）。
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    configure_mappers()
    _INITIALIZED = True
    log.debug("models initialized: %d tables", len(Base.metadata.tables))


# PG 用 BIGINT 自增；SQLite 只有 INTEGER PRIMARY KEY 才是 rowid 自增
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

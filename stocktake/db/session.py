# stocktake/db/session.py
# 统一的异步会话工厂 + FastAPI 依赖（get_session）
from __future__ import annotations

import logging
import re
from collections.abc import AsyncGenerator
from typing import Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from stocktake.core.config import get_settings

log = logging.getLogger("stocktake.db")


# ---- DSN 归一：统一到 psycopg3 与 aiosqlite ----
def normalize_async_dsn(url: str) -> str:
    url = (url or "").strip()
    # 有些环境会把值写成 '"postgresql+psycopg://..."'，统一剥掉两侧引号
    if len(url) >= 2 and url[0] == url[-1] and url[0] in ("'", '"'):
        url = url[1:-1].strip()
    # sqlite:/// → sqlite+aiosqlite:///
    if url.startswith("sqlite:///"):
        return "sqlite+aiosqlite://" + url[len("sqlite:///") - 1 :]
    # postgres/postgresql(+*) → postgresql+psycopg
    if url.startswith("postgresql+asyncpg://") or url.startswith("postgres+asyncpg://"):
        return re.sub(r"^postgres(?:ql)?\+asyncpg://", "postgresql+psycopg://", url)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def _install_sqlite_tx_hooks(engine: AsyncEngine) -> None:
    """
    pysqlite 默认直到 DML 才隐式 BEGIN，SAVEPOINT 与并发写都不可靠：
    关掉驱动自带事务控制，由 SQLAlchemy 在 begin 时显式 BEGIN IMMEDIATE，
    写者在 busy timeout 内排队，而不是互相死锁。
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    dsn = normalize_async_dsn(url)
    if dsn.startswith("sqlite"):
        # 给写锁等待留余量（并发写同一个文件库时）
        engine = create_async_engine(dsn, echo=echo, connect_args={"timeout": 30})
        _install_sqlite_tx_hooks(engine)
        return engine
    return create_async_engine(dsn, echo=echo, pool_pre_ping=True)


_engine: Optional[AsyncEngine] = None
_maker: Optional[async_sessionmaker[AsyncSession]] = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """惰性创建全局 Engine + sessionmaker（导入时不连库）。"""
    global _engine, _maker
    if _maker is None:
        settings = get_settings()
        _engine = make_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)
        log.info("[DB] Using DSN (async): %s", _engine.url.render_as_string(hide_password=True))
        _maker = async_sessionmaker(bind=_engine, class_=AsyncSession, expire_on_commit=False)
    return _maker


# ---- FastAPI 依赖 ----
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with get_sessionmaker()() as session:
        yield session


# ---- 关闭引擎（测试/生命周期） ----
async def close_engine() -> None:
    global _engine, _maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _maker = None

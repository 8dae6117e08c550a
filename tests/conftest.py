# tests/conftest.py
from __future__ import annotations

from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from stocktake.db.base import Base, init_models
from stocktake.db.session import get_session, make_engine
from stocktake.main import app
from tests.helpers.stocktake import ORG, Seed, seed_stocktake


# =========================================
# 每用例独立的 sqlite 文件库（并发用例需要真实文件锁）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'stocktake.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    标准 Session：用例结束时未提交的内容一律回滚。
    注意 sqlite 写锁：同一用例里再走 API / 另开会话前要先 commit。
    """
    async with async_session_maker() as sess:
        try:
            yield sess
        finally:
            if sess.in_transaction():
                await sess.rollback()


@pytest_asyncio.fixture(scope="function")
async def seed(async_session_maker) -> Seed:
    return await seed_stocktake(async_session_maker)


# =========================================
# HTTP 客户端：get_session 指向用例自己的库
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(async_session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _override_session() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as sess:
            yield sess

    app.dependency_overrides[get_session] = _override_session
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            headers={"X-Org-Id": ORG},
        ) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session, None)

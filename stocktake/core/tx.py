# stocktake/core/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def tx_commit(session: AsyncSession):
    """
    一次请求 = 一个事务：正常退出提交，异常回滚。
    Service 内部不得控事务（只 flush），由调用方包这一层。
    """
    if session.in_transaction():
        # 依赖注入或前置读取已触发 autobegin：沿用当前事务
        try:
            yield
        except BaseException:
            await session.rollback()
            raise
        else:
            await session.commit()
        return

    async with session.begin():
        yield

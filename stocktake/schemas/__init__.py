# stocktake/schemas/__init__.py
"""
Schemas package

不做聚合导出；需要时从具体模块导入，例如：
    from stocktake.schemas.stock import CountIn, ItemView
"""

__all__: list[str] = []

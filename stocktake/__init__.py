# stocktake/__init__.py
"""多人实时盘点：计数对账、差异核准、zone 完成播报。"""

__version__ = "1.0.0"

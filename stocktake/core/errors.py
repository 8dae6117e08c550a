# stocktake/core/errors.py
from __future__ import annotations

from typing import Any, Dict, List, Optional


class StocktakeError(Exception):
    """
    领域错误基类：kind（机器可读）+ message（给人看）+ http_status。
    由 http_problem_handlers 统一翻译为 Problem 形状。
    """

    kind = "stocktake_error"
    http_status = 400

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        next_actions: Optional[List[Dict[str, str]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context
        self.next_actions = next_actions


class InvalidInput(StocktakeError):
    kind = "invalid_input"
    http_status = 422


class NotFound(StocktakeError):
    kind = "not_found"
    http_status = 404


class InvalidState(StocktakeError):
    kind = "invalid_state"
    http_status = 409


class Unauthorized(StocktakeError):
    kind = "unauthorized"
    http_status = 403


class Conflict(StocktakeError):
    # 预留：乐观锁（version 列）落地后使用，当前基线不抛
    kind = "conflict"
    http_status = 409

# stocktake/http_problem_handlers.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from stocktake.api.problem import make_problem
from stocktake.core.errors import StocktakeError

logger = logging.getLogger("stocktake")


def _new_trace_id() -> str:
    return f"t_{uuid.uuid4().hex[:12]}"


def _req_ctx(req: Request) -> Dict[str, Any]:
    return {"path": getattr(req.url, "path", ""), "method": req.method}


def _problem_from_http_exc(req: Request, exc: HTTPException) -> Dict[str, Any]:
    """
    HTTPException.detail → Problem：
    - 已是 Problem（error_code/message）：补齐 http_status/trace_id/context
    - str / 其它：兜底为 state
    """
    status_code = int(exc.status_code)
    trace_id = _new_trace_id()
    ctx = _req_ctx(req)

    d = exc.detail
    if isinstance(d, dict) and "error_code" in d and "message" in d:
        out = dict(d)
        out.setdefault("http_status", status_code)
        out.setdefault("trace_id", trace_id)
        merged = dict(ctx)
        if isinstance(out.get("context"), dict):
            merged.update(out["context"])
        out["context"] = merged
        return out

    msg = str(d) if d is not None else "请求被拒绝"
    return make_problem(
        status_code=status_code,
        error_code="http_error",
        message=msg,
        context=ctx,
        details=[{"type": "state", "reason": msg}],
        trace_id=trace_id,
    )


def problem_from_domain_error(req: Request, exc: StocktakeError) -> Dict[str, Any]:
    ctx = _req_ctx(req)
    if exc.context:
        ctx.update(exc.context)
    return make_problem(
        status_code=exc.http_status,
        error_code=exc.kind,
        message=exc.message,
        context=ctx,
        next_actions=exc.next_actions,
        trace_id=_new_trace_id(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(Exception)
    async def _unhandled_exc(req: Request, exc: Exception):
        trace_id = _new_trace_id()
        logger.exception("UNHANDLED_EXC[%s]: %s", trace_id, exc)
        content = make_problem(
            status_code=500,
            error_code="internal_error",
            message="系统异常，请稍后重试",
            context=_req_ctx(req),
            trace_id=trace_id,
        )
        return JSONResponse(status_code=500, content=content)

    @app.exception_handler(StocktakeError)
    async def _domain_exc(req: Request, exc: StocktakeError):
        content = problem_from_domain_error(req, exc)
        logger.warning("%s %s: %s", content["error_code"], content["context"].get("path"), exc.message)
        return JSONResponse(status_code=exc.http_status, content=content)

    @app.exception_handler(RequestValidationError)
    async def _validation_exc(req: Request, exc: RequestValidationError):
        details: List[Dict[str, Any]] = []
        for i, e in enumerate(exc.errors()):
            if not isinstance(e, dict):
                continue
            details.append(
                {
                    "type": "validation",
                    "path": f"validation[{i}]",
                    "reason": str(e.get("msg") or e.get("type") or "invalid"),
                }
            )

        content = make_problem(
            status_code=422,
            error_code="invalid_input",
            message="请求参数不合法",
            context=_req_ctx(req),
            details=details,
            trace_id=_new_trace_id(),
        )
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(HTTPException)
    async def _http_exc(req: Request, exc: HTTPException):
        content = _problem_from_http_exc(req, exc)
        return JSONResponse(status_code=int(exc.status_code), content=content)

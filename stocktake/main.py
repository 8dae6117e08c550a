# stocktake/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stocktake.api.routers.stock import router as stock_router
from stocktake.core.config import get_settings
from stocktake.core.logging import setup_logging
from stocktake.db.session import close_engine
from stocktake.http_problem_handlers import register_exception_handlers

logger = logging.getLogger("stocktake")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, json=settings.JSON_LOG)
    logger.info("stocktake starting (env=%s)", settings.ENV)
    try:
        yield
    finally:
        await close_engine()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Stocktake",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://127.0.0.1:3000",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(stock_router)

    @app.get("/healthz", tags=["meta"])
    async def healthz():
        return {"ok": True}

    return app


app = create_app()

"""
Read-only HTTP surface over the ledger: stored document versions, context
changes and stored predictions. Writes happen through tools/ledger.py only.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import get_settings
from core.database import dispose_database, init_database
from core.errors import ConflictError, UnavailableError
from core.logging import setup_logging
from routes.api_v1 import api_v1_router

settings = get_settings()
setup_logging(settings)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.app_name,
    description="Versioned evidence documents and stored predictions per scope.",
)

# Local dashboards only; the API never accepts writes.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_methods=["GET"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(api_v1_router)


@app.exception_handler(UnavailableError)
async def unavailable_handler(request: Request, exc: UnavailableError) -> JSONResponse:
    logger.error("Store unavailable while serving %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.on_event("startup")
async def on_startup() -> None:
    db = await init_database(settings.database_url)
    await db.create_schema()
    logger.info("Ledger API started (env=%s, default scope=%s)", settings.env, settings.scope)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await dispose_database()
    logger.info("Ledger API stopped")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "app": settings.app_name, "env": settings.env}

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from partnerhub.api import admin, files, public, reminders
from partnerhub.api.deps import reminder_service
from partnerhub.config import settings
from partnerhub.db.session import SessionLocal
from partnerhub.errors import AppError, ValidationFailed
from partnerhub.scheduler import SchedulerService
from partnerhub.services.logging import configure_logging


logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
_START_TIME = datetime.utcnow()
scheduler = SchedulerService(reminder_service)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(public.router)
app.include_router(admin.router)
app.include_router(reminders.router)
app.include_router(files.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s %s", request.method, request.url.path, exc.code, exc.message)
    else:
        logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message)
    body = exc.to_dict()
    if request.url.path.startswith("/report/"):
        body = {"code": exc.code, "userMessage": exc.user_message}
    return JSONResponse(status_code=exc.http_status, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    error = ValidationFailed(details={"errors": errors})
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    error = AppError("SYSTEM_001")
    return JSONResponse(status_code=error.http_status, content=error.to_dict())


@app.on_event("startup")
def startup() -> None:
    configure_logging()
    if settings.scheduler_enabled:
        scheduler.start()


@app.on_event("shutdown")
def shutdown() -> None:
    scheduler.shutdown()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.get("/api/health")
def api_health() -> dict:
    db_ok = True
    db_ping_ms: Optional[float] = None
    try:
        with SessionLocal() as db:
            start = time.perf_counter()
            db.execute(text("select 1"))
            db_ping_ms = (time.perf_counter() - start) * 1000
    except Exception:
        logger.exception("database ping failed")
        db_ok = False
    uptime_seconds = (datetime.utcnow() - _START_TIME).total_seconds()
    return {
        "status": "ok" if db_ok else "degraded",
        "db_ok": db_ok,
        "db_ping_ms": db_ping_ms,
        "scheduler_running": scheduler.running,
        "uptime_seconds": uptime_seconds,
    }

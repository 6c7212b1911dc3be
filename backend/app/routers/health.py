"""Liveness and readiness probes."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from urbanfix import __version__
from urbanfix.db import db

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def liveness():
    """The process is up; says nothing about the database."""
    return {"status": "ok", "version": __version__}


@router.get("/ready")
def readiness():
    """200 when the database answers ``SELECT 1``, 503 otherwise."""
    result = db.health_check()
    body = {
        "status": "ready" if result["healthy"] else "not_ready",
        "checks": {"database": result["healthy"]},
        "database": {"backend": result["backend"], "latency_ms": result["latency_ms"]},
    }
    if not result["healthy"]:
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body

"""Liveness and readiness checks."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

from codescan.config import settings
from codescan.database.mongo import get_db, ping
from codescan.utils.datetime import utc_now

router = APIRouter()


@router.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utc_now().isoformat(),
    }


@router.get("/health/ready")
def readiness(db: Database = Depends(get_db)):
    """503 until MongoDB answers a ping."""
    try:
        ping(db)
    except PyMongoError as exc:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "database": str(exc)},
        )
    return {"status": "ready", "database": "connected"}

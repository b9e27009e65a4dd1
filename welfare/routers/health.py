import logging
from datetime import datetime, UTC

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from .. import __version__
from ..config import settings
from ..db import ping
from ..deps import get_engine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", status_code=status.HTTP_200_OK)
def health(engine: Engine = Depends(get_engine)):
    body = {
        "status": "ok",
        "version": __version__,
        "environment": settings.app_env,
        "timestamp": datetime.now(UTC).isoformat(),
        "database": "connected",
    }
    try:
        ping(engine)
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        body.update(status="error", database="disconnected")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=body)
    return body

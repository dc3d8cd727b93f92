"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codescan.api import health, integrations, scans
from codescan.config import settings
from codescan.core.logging import setup_logging
from codescan.database.mongo import close_client
from codescan.middleware.error_codes import register_exception_handlers

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s %s starting", settings.APP_NAME, settings.APP_VERSION)
    yield
    close_client()


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Repository scans and CI/CD webhook analysis",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(scans.router, prefix="/api")
app.include_router(integrations.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("codescan.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)

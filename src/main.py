# -*- coding: utf-8 -*-
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.v1.router import api_router
from src.core.config import Settings, get_settings
from src.core.database import init_db

settings = get_settings()


def _setup_logging(settings: Settings) -> None:
    """Configure the root logger once."""
    root = logging.getLogger()
    if getattr(root, "_smart_search_configured", False):
        return

    level = settings.log_level or ("DEBUG" if settings.debug else "INFO")
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)s  %(name)s  %(message)s"))

    root.setLevel(level.upper())
    root.addHandler(handler)
    root._smart_search_configured = True


_setup_logging(settings)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Interactive search sessions with suggestions, history and ranked results",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "docs": "/docs",
        "health": f"{settings.api_v1_prefix}/health",
        "session": f"{settings.api_v1_prefix}/search/session",
    }

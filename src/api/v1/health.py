# -*- coding: utf-8 -*-
from typing import Annotated

from fastapi import APIRouter, Depends

from src.core.config import Settings, get_settings

router = APIRouter()


@router.get("/health")
async def health_check(settings: Annotated[Settings, Depends(get_settings)]):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

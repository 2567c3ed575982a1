# -*- coding: utf-8 -*-
from fastapi import APIRouter

from src.api.v1 import health, search

api_router = APIRouter()

# Health check
api_router.include_router(health.router, tags=["health"])

# Search session, history and stats
api_router.include_router(search.router)

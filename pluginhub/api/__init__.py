"""
API routes for the PluginHub server.
"""

from fastapi import APIRouter

from pluginhub.api import duplicates, editors, health, store

# Create main API router
api_router = APIRouter(prefix="/api")

api_router.include_router(health.router, tags=["health"])
api_router.include_router(editors.router, tags=["editors"])
api_router.include_router(duplicates.router, tags=["duplicates"])
api_router.include_router(store.router, tags=["store"])

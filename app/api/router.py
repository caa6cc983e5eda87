"""
Main API router
"""
from fastapi import APIRouter

from app.api.v1 import (
    health,
    leaves,
    holidays,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(leaves.router, prefix="/leaves", tags=["leaves"])
api_router.include_router(holidays.router, prefix="/holidays", tags=["holidays"])

"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from seatsync.api.routes import seats

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(seats.router)

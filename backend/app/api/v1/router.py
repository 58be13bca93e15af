"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import drivers

router = APIRouter()

# Driver ping ingestion
router.include_router(drivers.router)

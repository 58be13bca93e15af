"""
Driver ping API endpoints.

Drivers report their GPS position every few seconds.
"""

from fastapi import APIRouter, Depends, Response, status

from backend.app.core.dependencies import get_ingestion_service
from backend.app.schemas.ping import Ping
from backend.app.services.ping_ingestion import PingIngestionService

router = APIRouter(prefix="/drivers", tags=["Drivers - Pings"])


@router.post("/ping", status_code=status.HTTP_201_CREATED, response_class=Response)
async def record_driver_ping(
    ping: Ping,
    service: PingIngestionService = Depends(get_ingestion_service),
):
    """
    Record one driver ping.

    Returns 201 with an empty body. Invalid bodies are rejected with 400
    before reaching the store.
    """
    await service.ingest(ping)
    return Response(status_code=status.HTTP_201_CREATED)

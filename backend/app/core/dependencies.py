"""
Service dependencies for FastAPI.

The ingestion service is built once in ``create_app()`` and kept on
``app.state``; routes receive it here.
"""

from fastapi import Request

from backend.app.services.ping_ingestion import PingIngestionService


def get_ingestion_service(request: Request) -> PingIngestionService:
    """FastAPI dependency returning the shared ingestion service."""
    return request.app.state.ingestion_service

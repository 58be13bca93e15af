"""
Concurrency Tests.

Validates that concurrent first use opens exactly one connection and that
concurrent ingestion needs no extra coordination.
"""

import asyncio

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from backend.app.core.exceptions import StoreConnectionError
from backend.app.models.enums import ConnectionState
from backend.app.services.ping_ingestion import PingIngestionService


@pytest.mark.asyncio
async def test_concurrent_first_connects_share_one_attempt(connection, mongo_client, client_factory, gate):
    """N concurrent connect() calls -> one physical attempt, one client."""
    mongo_client.admin.gate = gate

    callers = [asyncio.create_task(connection.connect()) for _ in range(25)]
    await asyncio.sleep(0)
    assert connection.state is ConnectionState.CONNECTING

    gate.set()
    results = await asyncio.gather(*callers)

    assert client_factory.call_count == 1
    assert mongo_client.admin.ping_count == 1
    assert all(result is mongo_client for result in results)
    assert connection.state is ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_concurrent_first_connects_share_one_failure(connection, mongo_client, client_factory, gate):
    mongo_client.admin.gate = gate
    mongo_client.admin.error = ServerSelectionTimeoutError("mongo.test:27017: connection refused")

    callers = [asyncio.create_task(connection.connect()) for _ in range(10)]
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(*callers, return_exceptions=True)

    assert client_factory.call_count == 1
    assert mongo_client.admin.ping_count == 1
    assert all(isinstance(result, StoreConnectionError) for result in results)
    assert all(result is results[0] for result in results)
    assert connection.state is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_cancelled_joiner_does_not_cancel_attempt(connection, mongo_client, gate):
    mongo_client.admin.gate = gate

    leader = asyncio.create_task(connection.connect())
    joiner = asyncio.create_task(connection.connect())
    await asyncio.sleep(0)

    joiner.cancel()
    gate.set()

    assert await leader is mongo_client
    with pytest.raises(asyncio.CancelledError):
        await joiner
    assert connection.state is ConnectionState.CONNECTED


@pytest.mark.asyncio
async def test_concurrent_ingest_stores_every_ping(connection, ready_store, pings):
    service = PingIngestionService(connection, ready_store)

    await asyncio.gather(*(
        service.ingest({
            "driverId": f"driver-{i % 5}",
            "latitude": 10.0,
            "longitude": 20.0,
            "timestamp": 1700000000 + i,
        })
        for i in range(50)
    ))

    assert len(pings.documents) == 50

"""
MongoDB connection management.

This module owns the single Motor client shared by the whole process.
Concurrent callers of ``connect()`` join one in-flight attempt, and
driver-side connection loss flips the state back to DISCONNECTED so the
next caller re-establishes instead of reusing a dead client.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import monitoring
from pymongo.errors import PyMongoError

from backend.app.core.config import Settings
from backend.app.core.exceptions import StoreConnectionError
from backend.app.models.enums import ConnectionState

logger = logging.getLogger("drivers_tracking.mongo")

ClientFactory = Callable[..., AsyncIOMotorClient]


class ConnectionMonitor(monitoring.ServerHeartbeatListener, monitoring.TopologyListener):
    """
    pymongo event listener forwarding connection loss to a MongoConnection.

    Registered when the client is built but inert until ``arm()`` is called
    after the connection reached CONNECTED. Callbacks run on driver threads,
    so the notification is handed to the event loop that owns the state.
    """

    def __init__(self, on_lost: Callable[[str], None]):
        self._on_lost = on_lost
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def armed(self) -> bool:
        return self._loop is not None

    def arm(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def disarm(self) -> None:
        self._loop = None

    def _notify(self, reason: str) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._on_lost, reason)

    # ServerHeartbeatListener
    def started(self, event) -> None:
        pass

    def succeeded(self, event) -> None:
        pass

    def failed(self, event) -> None:
        self._notify(f"heartbeat to {event.connection_id} failed: {event.reply}")

    # TopologyListener
    def opened(self, event) -> None:
        pass

    def description_changed(self, event) -> None:
        pass

    def closed(self, event) -> None:
        self._notify("topology closed")


class MongoConnection:
    """
    Single shared MongoDB connection with single-flight connect.

    Usage:
        connection = MongoConnection(settings)
        client = await connection.connect()
        ...
        await connection.disconnect()
    """

    def __init__(self, settings: Settings, client_factory: ClientFactory = AsyncIOMotorClient):
        self._settings = settings
        self._client_factory = client_factory
        self._client: Optional[AsyncIOMotorClient] = None
        self._state = ConnectionState.DISCONNECTED
        self._pending: Optional[asyncio.Task] = None
        self._monitor = ConnectionMonitor(self._mark_lost)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def monitor(self) -> ConnectionMonitor:
        return self._monitor

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    def client_options(self) -> dict[str, Any]:
        """Pool, timeout and write concern options passed to the client."""
        return {
            "maxPoolSize": self._settings.mongo_max_pool_size,
            "minPoolSize": self._settings.mongo_min_pool_size,
            "maxIdleTimeMS": self._settings.mongo_max_idle_time_ms,
            "serverSelectionTimeoutMS": self._settings.mongo_server_selection_timeout_ms,
            "socketTimeoutMS": self._settings.mongo_socket_timeout_ms,
            # Acknowledged by the primary, no journal sync
            "w": 1,
            "journal": False,
            "tz_aware": True,
            # Dates past year 9999 decode as DatetimeMS instead of raising
            "datetime_conversion": "DATETIME_AUTO",
            "event_listeners": [self._monitor],
        }

    async def connect(self) -> AsyncIOMotorClient:
        """
        Return a connected client, establishing it if needed.

        Callers arriving while an attempt is in flight await that same
        attempt. A failed attempt raises StoreConnectionError to every
        waiting caller and leaves the connection DISCONNECTED.
        """
        if self._state is ConnectionState.CONNECTED and self._client is not None:
            return self._client

        if self._pending is None:
            self._state = ConnectionState.CONNECTING
            self._pending = asyncio.get_running_loop().create_task(self._establish())

        # A cancelled joiner must not cancel the shared attempt
        return await asyncio.shield(self._pending)

    async def get_client(self) -> AsyncIOMotorClient:
        if self._state is ConnectionState.CONNECTED and self._client is not None:
            return self._client
        return await self.connect()

    async def disconnect(self) -> None:
        """Close the client if present. Safe to call repeatedly."""
        self._monitor.disarm()
        client, self._client = self._client, None
        self._state = ConnectionState.DISCONNECTED
        if client is not None:
            client.close()
            logger.info("MongoDB connection closed")

    async def _establish(self) -> AsyncIOMotorClient:
        created = self._client is None
        client = self._client
        try:
            if client is None:
                client = self._client_factory(self._settings.mongo_uri, **self.client_options())
                self._client = client
            await client.admin.command("ping")
        except (PyMongoError, OSError) as exc:
            if created and self._client is client and client is not None:
                self._client = None
                client.close()
            self._state = ConnectionState.DISCONNECTED
            logger.error("MongoDB connection failed: %s", exc)
            raise StoreConnectionError(f"MongoDB connection failed: {exc}") from exc
        finally:
            self._pending = None

        if self._client is not client:
            # disconnect() ran while the ping was in flight
            self._state = ConnectionState.DISCONNECTED
            raise StoreConnectionError("MongoDB connection closed while connecting")

        self._state = ConnectionState.CONNECTED
        self._monitor.arm(asyncio.get_running_loop())
        logger.info("MongoDB connected successfully")
        return client

    def _mark_lost(self, reason: str) -> None:
        if self._state is not ConnectionState.CONNECTED or not self._monitor.armed:
            return
        logger.warning("MongoDB connection lost: %s", reason)
        self._monitor.disarm()
        self._state = ConnectionState.DISCONNECTED

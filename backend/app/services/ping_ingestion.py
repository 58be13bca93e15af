"""
Ping ingestion service.

Validates one driver ping, converts its Unix-seconds timestamp to an
instant and inserts exactly one document into the ``pings`` collection.
"""

import logging
from typing import Any, Mapping, Union

from pydantic import ValidationError
from pymongo.errors import PyMongoError

from backend.app.core.exceptions import PingValidationError, StoreWriteError
from backend.app.db.mongo import MongoConnection
from backend.app.db.ping_collection import COLLECTION_NAME, PingStore
from backend.app.models.ping_record import PingRecord
from backend.app.schemas.ping import Ping

logger = logging.getLogger("drivers_tracking.ingestion")


class PingIngestionService:

    def __init__(self, connection: MongoConnection, ping_store: PingStore):
        self._connection = connection
        self._ping_store = ping_store

    @staticmethod
    def validate(raw_ping: Union[Ping, Mapping[str, Any]]) -> Ping:
        if isinstance(raw_ping, Ping):
            return raw_ping
        try:
            return Ping.model_validate(raw_ping)
        except ValidationError as exc:
            raise PingValidationError(exc.errors(include_url=False)) from exc

    async def ingest(self, raw_ping: Union[Ping, Mapping[str, Any]]) -> PingRecord:
        """
        Validate, transform and persist one ping.

        No idempotency key is generated: a client retrying after a timeout
        can store the same ping twice.

        Args:
            raw_ping: Validated Ping or a raw mapping decoded from JSON

        Returns:
            The stored record

        Raises:
            PingValidationError: ping does not match the Ping shape
            StoreNotReadyError: collection was never provisioned
            StoreConnectionError: store unreachable
            StoreWriteError: insert failed
        """
        ping = self.validate(raw_ping)
        record = PingRecord.from_ping(ping)

        collection = self._ping_store.get_collection()
        # Re-establishes the connection after a driver-reported loss
        await self._connection.get_client()

        try:
            await collection.insert_one(record.to_document())
        except PyMongoError as exc:
            logger.error("Ping insert failed for driver %s: %s", record.driver_id, exc)
            raise StoreWriteError(COLLECTION_NAME, driver_id=record.driver_id) from exc

        logger.debug("Ping stored: %r", record)
        return record

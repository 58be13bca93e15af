"""
Ping collection provisioning and access.

Creates the ``pings`` time-series collection on first startup and hands out
the cached collection afterwards. Existing collections are used as-is.
"""

import logging
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import CollectionInvalid, OperationFailure, PyMongoError

from backend.app.core.config import Settings
from backend.app.core.exceptions import StoreNotReadyError, StoreProvisioningError
from backend.app.models.ping_record import PingRecord

logger = logging.getLogger("drivers_tracking.pings")

COLLECTION_NAME = "pings"
TIME_FIELD = "timestamp"
META_FIELD = "driverId"
# Tuned for 1-30 second ping intervals
GRANULARITY = "seconds"

NAMESPACE_EXISTS = 48


class PingStore:
    """
    Owner of the process-wide ``pings`` collection handle.

    ``initialize()`` must complete during startup before any
    ``get_collection()`` call; there is no lazy creation.
    """

    def __init__(self, settings: Settings):
        self._db_name = settings.mongo_db_name
        self._retention_days = settings.ping_retention_days
        self._ttl_seconds = settings.ping_retention_seconds
        self._collection: Optional[AsyncIOMotorCollection] = None

    @property
    def is_initialized(self) -> bool:
        return self._collection is not None

    def timeseries_options(self) -> dict:
        return {
            "timeField": TIME_FIELD,
            "metaField": META_FIELD,
            "granularity": GRANULARITY,
        }

    async def initialize(self, client: AsyncIOMotorClient) -> None:
        """
        Ensure the time-series collection exists and cache it.

        Raises:
            StoreProvisioningError: listing or creation failed
        """
        db = client[self._db_name]

        try:
            existing = await db.list_collection_names(filter={"name": COLLECTION_NAME})

            if COLLECTION_NAME not in existing:
                logger.info("Creating Time Series collection: %s", COLLECTION_NAME)
                await self._create(db)
            else:
                logger.info("Using existing collection: %s", COLLECTION_NAME)
        except PyMongoError as exc:
            logger.error("Failed to initialize ping collection: %s", exc)
            raise StoreProvisioningError(COLLECTION_NAME) from exc

        self._collection = db[COLLECTION_NAME]
        logger.info("Ping collection initialized successfully")

    async def _create(self, db) -> None:
        try:
            await db.create_collection(
                COLLECTION_NAME,
                timeseries=self.timeseries_options(),
                expireAfterSeconds=self._ttl_seconds,
            )
        except (CollectionInvalid, OperationFailure) as exc:
            if isinstance(exc, OperationFailure) and exc.code != NAMESPACE_EXISTS:
                raise
            # Another instance created it after our listing
            logger.info("Collection %s created concurrently, using it", COLLECTION_NAME)
            return

        logger.info(
            "Time Series collection created with %d days retention",
            self._retention_days,
        )

    def get_collection(self) -> AsyncIOMotorCollection:
        """
        Get the pings collection instance.

        Raises:
            StoreNotReadyError: initialize() has not completed
        """
        if self._collection is None:
            raise StoreNotReadyError()
        return self._collection

    async def find_pings(
        self,
        driver_id: str,
        start: datetime,
        end: datetime,
        limit: Optional[int] = None,
    ) -> list[PingRecord]:
        """
        Pings of one driver with ``start <= timestamp < end``, oldest first.

        Args:
            limit: Maximum number of records, or None for all of them

        Raises:
            ValueError: limit is not positive
            StoreNotReadyError: initialize() has not completed
        """
        if limit is not None and limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        collection = self.get_collection()
        cursor = collection.find(
            {META_FIELD: driver_id, TIME_FIELD: {"$gte": start, "$lt": end}},
            projection={"_id": False},
        ).sort(TIME_FIELD, ASCENDING)
        if limit is not None:
            cursor = cursor.limit(limit)

        documents = await cursor.to_list(length=limit)
        return [PingRecord.from_document(doc) for doc in documents]

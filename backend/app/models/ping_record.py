"""
Ping record model.

Document stored in the ``pings`` time-series collection. One record per
accepted ping, never updated, expired by MongoDB after the retention window.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Union

from bson.datetime_ms import DatetimeMS

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Range of Python's datetime, in Unix milliseconds
MIN_DATETIME_MS = (datetime.min.replace(tzinfo=timezone.utc) - EPOCH) // timedelta(milliseconds=1)
MAX_DATETIME_MS = (datetime.max.replace(tzinfo=timezone.utc) - EPOCH) // timedelta(milliseconds=1)

BsonDate = Union[datetime, DatetimeMS]


def millis_to_bson_date(millis: int) -> BsonDate:
    """
    Unix milliseconds -> UTC instant.

    Instants past year 9999 cannot be a ``datetime``; pymongo encodes a
    ``DatetimeMS`` as the same BSON date type.
    """
    if MIN_DATETIME_MS <= millis <= MAX_DATETIME_MS:
        return EPOCH + timedelta(milliseconds=millis)
    return DatetimeMS(millis)


def bson_date_to_millis(value: BsonDate) -> int:
    if isinstance(value, DatetimeMS):
        return int(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


@dataclass(frozen=True)
class PingRecord:
    """
    Ping record model.

    Kept as Unix milliseconds; ``timestamp`` is the BSON date MongoDB
    buckets the collection on, never a raw integer.
    """
    driver_id: str
    latitude: float
    longitude: float
    timestamp_ms: int

    @classmethod
    def from_ping(cls, ping) -> "PingRecord":
        return cls(
            driver_id=ping.driverId,
            latitude=float(ping.latitude),
            longitude=float(ping.longitude),
            timestamp_ms=ping.timestamp * 1000,
        )

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "PingRecord":
        return cls(
            driver_id=document["driverId"],
            latitude=document["latitude"],
            longitude=document["longitude"],
            timestamp_ms=bson_date_to_millis(document["timestamp"]),
        )

    @property
    def timestamp(self) -> BsonDate:
        return millis_to_bson_date(self.timestamp_ms)

    def to_document(self) -> dict[str, Any]:
        return {
            "driverId": self.driver_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": self.timestamp,
        }

    def __repr__(self):
        return f"<PingRecord(driver_id={self.driver_id}, lat={self.latitude}, lng={self.longitude}, ts_ms={self.timestamp_ms})>"

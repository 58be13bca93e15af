"""
Driver ping schemas.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Largest Unix-seconds value whose millisecond instant fits a BSON date (int64)
MAX_TIMESTAMP_SECONDS = (2**63 - 1) // 1000


class Ping(BaseModel):
    """Schema for an inbound driver GPS ping."""
    model_config = ConfigDict(strict=True)

    driverId: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    timestamp: int = Field(..., gt=0, le=MAX_TIMESTAMP_SECONDS, description="Unix seconds")

    @field_validator("timestamp", mode="before")
    @classmethod
    def whole_number_timestamp(cls, value: Any) -> Any:
        # JSON has one number type: 1700000000.0 is an integer value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

# ─────────────────────────────────────────────────────────────────
# models.py — Data Models
#
# Two kinds of shapes live here:
#   - Location / Record → plain value types passed between the
#     scheduler and the record store
#   - Pydantic schemas → what the HTTP front-end accepts and returns
#
# SEPARATION OF CONCERNS:
# If the API contract changes (e.g. adding a new field), we only
# update THIS file.
# ─────────────────────────────────────────────────────────────────

from typing import List, NamedTuple, Optional

from pydantic import BaseModel, Field


class Location(NamedTuple):
    """A (latitude, longitude) pair in decimal degrees."""

    lat: float
    lon: float


class Record(NamedTuple):
    """What the record store keeps for one subscriber."""

    location: Location
    last_alert: Optional[int] = None   # unix seconds of the last positive check


class LocationUpdate(BaseModel):
    """
    Request body for PUT /subscribers/{key}/location

    {
        "lat": 59.437,
        "lon": 24.7536
    }

    Out-of-range coordinates are rejected with a 422 before they
    ever reach the scheduler.
    """

    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)

    def to_location(self) -> Location:
        return Location(self.lat, self.lon)


class SubscriberResponse(BaseModel):
    key: int
    lat: float
    lon: float
    last_alert: Optional[int] = None
    monitoring: bool             # True while a background check task is alive

    @classmethod
    def from_record(cls, key: int, record: Record, monitoring: bool) -> "SubscriberResponse":
        return cls(
            key=key,
            lat=record.location.lat,
            lon=record.location.lon,
            last_alert=record.last_alert,
            monitoring=monitoring,
        )


class SubscriberList(BaseModel):
    subscribers: List[SubscriberResponse]
    total: int

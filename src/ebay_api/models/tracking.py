"""Pydantic models for tracking provider responses."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class TrackingSnapshot:
    """Latest checkpoint state extracted from a provider response."""

    checkpoint_at: Optional[datetime] = None
    tag: Optional[str] = None
    summary: Optional[str] = None
    delivered_at: Optional[datetime] = None
    carrier_name: Optional[str] = None


# ==============================================================================
# 17TRACK (Tracking API v2.4)
# ==============================================================================


class SeventeenTrackError(BaseModel):
    code: int
    message: str


class SeventeenTrackRegisterAccepted(BaseModel):
    number: str
    carrier: int
    origin: Optional[int] = None


class SeventeenTrackRejected(BaseModel):
    number: str
    carrier: Optional[int] = None
    error: SeventeenTrackError


class SeventeenTrackRegisterData(BaseModel):
    accepted: List[SeventeenTrackRegisterAccepted] = Field(default_factory=list)
    rejected: List[SeventeenTrackRejected] = Field(default_factory=list)


class SeventeenTrackRegisterResponse(BaseModel):
    code: int
    data: SeventeenTrackRegisterData


class SeventeenTrackEvent(BaseModel):
    """Single checkpoint event."""

    time_iso: Optional[str] = None
    time_utc: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    stage: Optional[str] = None
    sub_status: Optional[str] = None

    class Config:
        extra = "allow"


class SeventeenTrackProviderInfo(BaseModel):
    key: Optional[int] = None
    name: Optional[str] = None

    class Config:
        extra = "allow"


class SeventeenTrackProvider(BaseModel):
    provider: Optional[SeventeenTrackProviderInfo] = None
    events: List[SeventeenTrackEvent] = Field(default_factory=list)

    class Config:
        extra = "allow"


class SeventeenTrackTracking(BaseModel):
    providers: List[SeventeenTrackProvider] = Field(default_factory=list)

    class Config:
        extra = "allow"


class SeventeenTrackLatestStatus(BaseModel):
    status: Optional[str] = None
    sub_status: Optional[str] = None
    sub_status_descr: Optional[str] = None

    class Config:
        extra = "allow"


class SeventeenTrackTrackInfo(BaseModel):
    """Live tracking state for one number."""

    latest_status: Optional[SeventeenTrackLatestStatus] = None
    latest_event: Optional[SeventeenTrackEvent] = None
    tracking: Optional[SeventeenTrackTracking] = None

    class Config:
        extra = "allow"


class SeventeenTrackTrackInfoAccepted(BaseModel):
    number: str
    carrier: int
    track_info: Optional[SeventeenTrackTrackInfo] = None

    class Config:
        extra = "allow"


class SeventeenTrackTrackInfoData(BaseModel):
    accepted: List[SeventeenTrackTrackInfoAccepted] = Field(default_factory=list)
    rejected: List[SeventeenTrackRejected] = Field(default_factory=list)


class SeventeenTrackTrackInfoResponse(BaseModel):
    code: int
    data: SeventeenTrackTrackInfoData


# ==============================================================================
# AFTERSHIP
# ==============================================================================


class AfterShipMeta(BaseModel):
    code: int
    message: Optional[str] = None


class AfterShipCheckpoint(BaseModel):
    checkpoint_time: Optional[str] = None
    message: Optional[str] = None
    tag: Optional[str] = None
    location: Optional[str] = None
    country_iso3: Optional[str] = None

    class Config:
        extra = "allow"


class AfterShipTracking(BaseModel):
    """Tracking object returned by create and get."""

    id: Optional[str] = None
    slug: Optional[str] = None
    tracking_number: str
    tag: Optional[str] = None
    delivered_at: Optional[str] = None
    shipment_delivery_date: Optional[str] = None
    last_checkpoint: Optional[AfterShipCheckpoint] = None
    checkpoints: Optional[List[AfterShipCheckpoint]] = None

    class Config:
        extra = "allow"


class AfterShipTrackingResponse(BaseModel):
    meta: AfterShipMeta
    data: AfterShipTracking


class AfterShipTrackingList(BaseModel):
    trackings: List[AfterShipTracking] = Field(default_factory=list)

    class Config:
        extra = "allow"


class AfterShipTrackingListResponse(BaseModel):
    meta: AfterShipMeta
    data: AfterShipTrackingList

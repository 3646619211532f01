"""Pydantic schemas for the HTTP API layer and the stored documents."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt


class DispatchStatus(str, Enum):
    """Result of a single batch send attempt."""

    sent = "sent"
    failed = "failed"


class DeviceToken(BaseModel):
    """A push token and the experience it is registered under."""

    token: str
    tenant_id: str
    registered_at: datetime


class Reading(BaseModel):
    """A stored distance measurement."""

    distance_cm: float
    created_at: datetime


class DispatchOutcome(BaseModel):
    """Outcome of one batch of the alert fan-out."""

    tenant_id: str
    batch_index: int = Field(..., ge=0, description="Position of the batch within its tenant.")
    status: DispatchStatus
    token_count: int = Field(..., ge=0)
    error: Optional[str] = None


class RegisterTokenRequest(BaseModel):
    """Body of ``POST /register-token``."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(..., description="Push token issued to the device.")
    experience_id: str = Field(
        ...,
        alias="experienceId",
        description="Experience (tenant) that owns the device.",
    )


class RegisterTokenResponse(BaseModel):
    status: str = "registered"
    token: str
    experience_id: str
    registered_at: datetime


class DistanceSubmission(BaseModel):
    """Body of ``POST /send-distance``."""

    distance: Union[StrictInt, StrictFloat] = Field(
        ..., description="Measured distance in centimetres."
    )


class ReadingOut(BaseModel):
    distance: float
    created_at: datetime

    @classmethod
    def from_reading(cls, reading: Reading) -> "ReadingOut":
        return cls(distance=reading.distance_cm, created_at=reading.created_at)


class SubmissionResponse(BaseModel):
    """Stored reading plus the fan-out report, when an alert fired."""

    stored: ReadingOut
    dispatch: Optional[List[DispatchOutcome]] = None


class LatestReadingResponse(BaseModel):
    distance: Optional[float] = None
    created_at: Optional[datetime] = None

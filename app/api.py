"""HTTP route definitions for the service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.schemas import (
    DistanceSubmission,
    LatestReadingResponse,
    ReadingOut,
    RegisterTokenRequest,
    RegisterTokenResponse,
    SubmissionResponse,
)
from services.errors import StorageError, ValidationError
from services.ingestion import IngestionCoordinator, build_default_coordinator

logger = logging.getLogger(__name__)

router = APIRouter()


def get_coordinator() -> IngestionCoordinator:
    return build_default_coordinator()


@router.post(
    "/register-token",
    response_model=RegisterTokenResponse,
    summary="Register or move a device push token to an experience.",
)
def register_token(
    body: RegisterTokenRequest,
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> RegisterTokenResponse:
    try:
        item = coordinator.registry.register(body.token, body.experience_id)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Error registering token")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error registering token",
        ) from exc
    return RegisterTokenResponse(
        token=item.token,
        experience_id=item.tenant_id,
        registered_at=item.registered_at,
    )


@router.post(
    "/send-distance",
    response_model=SubmissionResponse,
    summary="Store a distance reading and alert devices when it is too high.",
)
def send_distance(
    body: DistanceSubmission,
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> SubmissionResponse:
    try:
        result = coordinator.submit_reading(body.distance)
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StorageError as exc:
        logger.exception("Error storing distance")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error storing distance",
        ) from exc
    return SubmissionResponse(
        stored=ReadingOut.from_reading(result.stored),
        dispatch=result.dispatch,
    )


@router.get(
    "/latest-distance",
    response_model=LatestReadingResponse,
    summary="Fetch the most recently stored distance reading.",
)
def latest_distance(
    coordinator: IngestionCoordinator = Depends(get_coordinator),
) -> LatestReadingResponse:
    try:
        reading = coordinator.readings.latest()
    except StorageError as exc:
        logger.exception("Error fetching distance")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching distance",
        ) from exc
    if reading is None:
        return LatestReadingResponse()
    return LatestReadingResponse(distance=reading.distance_cm, created_at=reading.created_at)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}

"""Per-reading orchestration: store, evaluate, fan out."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, List, Optional

from app.schemas import DispatchOutcome, Reading
from datastore.mock_store import build_default_store
from push.base import PushService
from push.expo import ExpoPushClient
from push.mock_push import MockPushService
from services.alert_policy import AlertPolicy
from services.dispatcher import FanOutDispatcher
from services.readings import ReadingStore
from services.registry import TokenRegistry
from settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    stored: Reading
    dispatch: Optional[List[DispatchOutcome]] = None


class IngestionCoordinator:
    """Coordinates reading storage, the alert policy and the fan-out dispatcher."""

    def __init__(
        self,
        readings: ReadingStore,
        policy: AlertPolicy,
        dispatcher: FanOutDispatcher,
    ) -> None:
        self.readings = readings
        self.policy = policy
        self.dispatcher = dispatcher

    @property
    def registry(self) -> TokenRegistry:
        return self.dispatcher.registry

    def submit_reading(self, distance_cm: Any) -> IngestionResult:
        """Store a reading and, when it crosses the threshold, alert every device.

        Validation and storage errors propagate before anything is sent. The
        stored reading is kept whatever happens during the fan-out.
        """
        stored = self.readings.append(distance_cm)

        event = self.policy.evaluate(stored.distance_cm)
        if event is None:
            return IngestionResult(stored=stored)

        logger.info("Distance above threshold", extra={"distance_cm": stored.distance_cm})
        outcomes = self.dispatcher.dispatch(event)
        return IngestionResult(stored=stored, dispatch=outcomes)

    def shutdown(self) -> None:
        """Clean up worker and connection resources during application shutdown."""
        self.dispatcher.shutdown()
        self.dispatcher.push_service.close()


def build_push_service(settings: Settings) -> PushService:
    if settings.push_provider == "mock":
        return MockPushService()
    return ExpoPushClient(
        push_url=settings.expo_push_url,
        access_token=settings.expo_access_token,
        timeout=settings.push_timeout_seconds,
    )


@lru_cache
def build_default_coordinator(workers: Optional[int] = None) -> IngestionCoordinator:
    """Factory that wires the coordinator with settings-driven defaults."""
    settings = get_settings()
    store = build_default_store()
    registry = TokenRegistry(store)
    dispatcher = FanOutDispatcher(
        registry=registry,
        push_service=build_push_service(settings),
        workers=workers or settings.dispatch_workers,
    )
    return IngestionCoordinator(
        readings=ReadingStore(store),
        policy=AlertPolicy(threshold_cm=settings.alert_threshold_cm),
        dispatcher=dispatcher,
    )

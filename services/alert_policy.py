"""Threshold policy for distance readings."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from models.records import AlertEvent

DEFAULT_THRESHOLD_CM = 100.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertPolicy:
    """Pure decision component that can be unit tested in isolation."""

    def __init__(
        self,
        threshold_cm: float = DEFAULT_THRESHOLD_CM,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.threshold_cm = threshold_cm
        self._clock = clock

    def evaluate(self, distance_cm: float) -> Optional[AlertEvent]:
        """Return an alert when ``distance_cm`` is strictly above the threshold."""
        if distance_cm <= self.threshold_cm:
            return None
        return AlertEvent(
            distance_cm=distance_cm,
            triggered_at=self._clock(),
            message=f"Alert 🚨 Distance too high: {distance_cm:.2f} cm!",
        )

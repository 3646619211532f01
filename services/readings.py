from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Any, Optional

from app.schemas import Reading
from datastore.mock_store import MockDocumentStore
from services.errors import ValidationError

logger = logging.getLogger(__name__)


class ReadingStore:
    """Append-only log of distance readings."""

    def __init__(self, store: MockDocumentStore) -> None:
        self.store = store

    def append(self, distance_cm: Any) -> Reading:
        if isinstance(distance_cm, bool) or not isinstance(distance_cm, (int, float)):
            raise ValidationError("Invalid distance")
        try:
            value = float(distance_cm)
        except OverflowError as exc:
            raise ValidationError("Invalid distance") from exc
        if not math.isfinite(value):
            raise ValidationError("Invalid distance")

        reading = self.store.insert_reading(value, datetime.now(timezone.utc))
        logger.info("Stored distance reading", extra={"distance_cm": reading.distance_cm})
        return reading

    def latest(self) -> Optional[Reading]:
        return self.store.find_latest_reading()

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Dict, List, Sequence

from models.records import PushMessage
from push.base import PushService
from push.expo import PUSH_NOTIFICATION_CHUNK_LIMIT, is_expo_push_token

logger = logging.getLogger(__name__)


class MockPushService(PushService):
    """Records every batch in memory instead of calling a provider.

    Token validation follows the Expo format so local runs filter the same
    tokens a real deployment would.
    """

    def __init__(self, max_chunk_size: int = PUSH_NOTIFICATION_CHUNK_LIMIT) -> None:
        self.max_chunk_size = max_chunk_size
        self._sent: List[List[PushMessage]] = []
        self._lock = Lock()

    @property
    def sent_batches(self) -> list[list[PushMessage]]:
        with self._lock:
            return [list(batch) for batch in self._sent]

    def is_valid_token(self, token: str) -> bool:
        return is_expo_push_token(token)

    def send_batch(self, messages: Sequence[PushMessage]) -> List[Dict[str, Any]]:
        with self._lock:
            self._sent.append(list(messages))
            batch_number = len(self._sent)
        logger.info("Recorded mock push batch of %d messages", len(messages))
        return [
            {"status": "ok", "id": f"mock-{batch_number}-{position}"}
            for position, _ in enumerate(messages)
        ]

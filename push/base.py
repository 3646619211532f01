"""Push delivery port used by the fan-out dispatcher."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence

from models.records import PushMessage


class PushService(ABC):
    """Abstract interface for push notification providers."""

    max_chunk_size: int = 100

    @abstractmethod
    def is_valid_token(self, token: str) -> bool:
        """Return True when ``token`` matches the provider's token format."""

    @abstractmethod
    def send_batch(self, messages: Sequence[PushMessage]) -> List[Dict[str, Any]]:
        """Deliver one batch in a single provider call.

        Returns the provider's per-message tickets. Raises
        ``DispatchBatchError`` when the batch as a whole was not accepted.
        """

    def close(self) -> None:
        """Release any held connections."""

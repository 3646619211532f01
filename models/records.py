"""Transient values passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(slots=True, frozen=True)
class AlertEvent:
    """An alert produced by the policy for a single reading."""

    distance_cm: float
    triggered_at: datetime
    message: str


@dataclass(slots=True)
class DispatchBatch:
    """Tokens of one tenant that go out in a single provider call."""

    tenant_id: str
    index: int
    tokens: List[str] = field(default_factory=list)


@dataclass(slots=True)
class PushMessage:
    to: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    sound: str = "default"
    experience_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "to": self.to,
            "body": self.body,
            "data": self.data,
            "sound": self.sound,
        }
        if self.experience_id is not None:
            payload["_experienceId"] = self.experience_id
        return payload

"""Expo push service client."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import httpx

from models.records import PushMessage
from push.base import PushService
from services.errors import DispatchBatchError

logger = logging.getLogger(__name__)

DEFAULT_PUSH_URL = "https://exp.host/--/api/v2/push/send"
PUSH_NOTIFICATION_CHUNK_LIMIT = 100

_BRACKETED_TOKEN = re.compile(r"^(?:ExponentPushToken|ExpoPushToken)\[.+\]$")
_UUID_TOKEN = re.compile(
    r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE
)


def is_expo_push_token(token: Any) -> bool:
    if not isinstance(token, str):
        return False
    return bool(_BRACKETED_TOKEN.match(token) or _UUID_TOKEN.match(token))


class ExpoPushClient(PushService):
    """Sends message batches to the Expo push API with one POST per batch."""

    max_chunk_size = PUSH_NOTIFICATION_CHUNK_LIMIT

    def __init__(
        self,
        push_url: str = DEFAULT_PUSH_URL,
        access_token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self.push_url = push_url
        self._client = httpx.Client(headers=headers, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def is_valid_token(self, token: str) -> bool:
        return is_expo_push_token(token)

    def send_batch(self, messages: Sequence[PushMessage]) -> List[Dict[str, Any]]:
        if len(messages) > self.max_chunk_size:
            raise DispatchBatchError(
                f"Batch of {len(messages)} messages exceeds the limit of {self.max_chunk_size}."
            )

        try:
            response = self._client.post(
                self.push_url, json=[message.to_payload() for message in messages]
            )
        except httpx.HTTPError as exc:
            raise DispatchBatchError(f"Push request failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict) and payload.get("errors"):
            raise DispatchBatchError(self._describe_errors(payload["errors"]))
        if response.is_error:
            detail = response.text.strip() or "no detail provided."
            raise DispatchBatchError(
                f"Push service responded with status {response.status_code}: {detail}"
            )
        if not isinstance(payload, dict) or not isinstance(payload.get("data"), list):
            raise DispatchBatchError("Unexpected response payload from push service.")

        tickets: List[Dict[str, Any]] = payload["data"]
        for message, ticket in zip(messages, tickets):
            if ticket.get("status") == "error":
                logger.warning(
                    "Push ticket rejected for %s",
                    message.to,
                    extra={"reason": ticket.get("message")},
                )
        return tickets

    @staticmethod
    def _describe_errors(errors: Any) -> str:
        if not isinstance(errors, list):
            return f"Push service rejected the batch: {errors}"
        parts = []
        for error in errors:
            if isinstance(error, dict):
                parts.append(f"{error.get('code', 'UNKNOWN')}: {error.get('message', '')}".strip())
            else:
                parts.append(str(error))
        return "Push service rejected the batch: " + "; ".join(parts)

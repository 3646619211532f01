from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.schemas import DeviceToken
from datastore.mock_store import MockDocumentStore
from services.errors import ValidationError

logger = logging.getLogger(__name__)


def _present(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


class TokenRegistry:
    """Device token to experience associations, upserted by token."""

    def __init__(self, store: MockDocumentStore) -> None:
        self.store = store

    def register(self, token: str, tenant_id: str) -> DeviceToken:
        if not _present(token) or not _present(tenant_id):
            raise ValidationError("Missing token or experienceId")

        item = self.store.upsert_token(token, tenant_id, datetime.now(timezone.utc))
        logger.info("Registered push token", extra={"tenant_id": tenant_id})
        return item

    def snapshot_all(self) -> list[DeviceToken]:
        """Point-in-time copy of every registered token, in registration order."""
        return self.store.find_all_tokens()

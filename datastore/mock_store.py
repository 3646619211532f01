from __future__ import annotations

import json
import logging
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, List, Optional

from pydantic import ValidationError as SchemaError

from app.schemas import DeviceToken, Reading
from services.errors import StorageError
from settings import get_settings

logger = logging.getLogger(__name__)

TOKENS_FILENAME = "push_tokens.json"
READINGS_FILENAME = "distances.jsonl"


class MockDocumentStore:
    """In-memory push token and distance collections with optional disk persistence.

    Tokens are rewritten as a single JSON document on every upsert; readings
    are appended to a JSON-lines log. Each public call holds the store lock for
    its whole duration, so callers see every call as atomic.
    """

    def __init__(self, root_path: Optional[Path] = None) -> None:
        self.root_path = root_path
        self._tokens: Dict[str, DeviceToken] = {}
        self._readings: List[Reading] = []
        self._lock = Lock()
        if root_path:
            try:
                root_path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageError(f"Cannot create store directory {root_path}: {exc}") from exc
            self._load_from_disk()

    @property
    def tokens_path(self) -> Optional[Path]:
        return self.root_path / TOKENS_FILENAME if self.root_path else None

    @property
    def readings_path(self) -> Optional[Path]:
        return self.root_path / READINGS_FILENAME if self.root_path else None

    def upsert_token(self, token: str, tenant_id: str, registered_at: datetime) -> DeviceToken:
        item = DeviceToken(token=token, tenant_id=tenant_id, registered_at=registered_at)
        with self._lock:
            updated = dict(self._tokens)
            updated[token] = item
            self._persist_tokens(updated)
            self._tokens = updated
            return item.model_copy(deep=True)

    def find_all_tokens(self) -> list[DeviceToken]:
        with self._lock:
            return [item.model_copy(deep=True) for item in self._tokens.values()]

    def insert_reading(self, distance_cm: float, created_at: datetime) -> Reading:
        item = Reading(distance_cm=distance_cm, created_at=created_at)
        with self._lock:
            self._append_reading(item)
            self._readings.append(item)
            return item.model_copy(deep=True)

    def find_latest_reading(self) -> Optional[Reading]:
        with self._lock:
            if not self._readings:
                return None
            return self._readings[-1].model_copy(deep=True)

    def _persist_tokens(self, tokens: Dict[str, DeviceToken]) -> None:
        path = self.tokens_path
        if path is None:
            return
        payload = {token: item.model_dump(mode="json") for token, item in tokens.items()}
        try:
            path.write_text(json.dumps(payload, indent=2))
        except OSError as exc:
            raise StorageError(f"Failed to write push tokens: {exc}") from exc

    def _append_reading(self, item: Reading) -> None:
        path = self.readings_path
        if path is None:
            return
        try:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(item.model_dump_json() + "\n")
        except OSError as exc:
            raise StorageError(f"Failed to append reading: {exc}") from exc

    def _load_from_disk(self) -> None:
        tokens_path = self.tokens_path
        readings_path = self.readings_path
        assert tokens_path is not None and readings_path is not None

        try:
            if tokens_path.exists():
                data = json.loads(tokens_path.read_text() or "{}")
                for token, payload in data.items():
                    self._tokens[token] = DeviceToken.model_validate(payload)
            if readings_path.exists():
                with readings_path.open("r", encoding="utf-8") as handle:
                    for line in handle:
                        if line.strip():
                            self._readings.append(Reading.model_validate_json(line))
        except (OSError, json.JSONDecodeError, SchemaError) as exc:
            raise StorageError(f"Failed to load store from {self.root_path}: {exc}") from exc

        logger.info(
            "Loaded %d push tokens and %d readings from %s",
            len(self._tokens),
            len(self._readings),
            self.root_path,
        )


@lru_cache
def build_default_store(root_path: Optional[str] = None) -> MockDocumentStore:
    settings = get_settings()
    store_root = settings.store_root_path if root_path is None else root_path
    path = Path(store_root) if store_root else None
    return MockDocumentStore(root_path=path)

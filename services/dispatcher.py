"""Fan-out of alert events to registered devices."""

from __future__ import annotations

import logging
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional, Sequence

from app.schemas import DeviceToken, DispatchOutcome, DispatchStatus
from models.records import AlertEvent, DispatchBatch, PushMessage
from push.base import PushService
from services.registry import TokenRegistry

logger = logging.getLogger(__name__)


def group_by_tenant(tokens: Iterable[DeviceToken]) -> Dict[str, List[str]]:
    """Group tokens by tenant, keeping first-seen tenant order and snapshot order."""
    grouped: Dict[str, List[str]] = {}
    for item in tokens:
        grouped.setdefault(item.tenant_id, []).append(item.token)
    return grouped


def chunk_tokens(tenant_id: str, tokens: Sequence[str], size: int) -> List[DispatchBatch]:
    if size < 1:
        raise ValueError("Chunk size must be positive.")
    return [
        DispatchBatch(tenant_id=tenant_id, index=index, tokens=list(tokens[start : start + size]))
        for index, start in enumerate(range(0, len(tokens), size))
    ]


class FanOutDispatcher:
    """Groups, filters and chunks a registry snapshot, then sends each batch.

    Batches are independent units of failure: an exception from one send is
    recorded as a ``failed`` outcome and never reaches sibling batches or the
    caller. Sends run concurrently on a worker pool; outcomes are collected in
    batch-generation order (tenant order, then chunk order).
    """

    def __init__(
        self,
        registry: TokenRegistry,
        push_service: PushService,
        workers: int = 4,
    ) -> None:
        self.registry = registry
        self.push_service = push_service
        self.executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="dispatch")

    def build_batches(self, snapshot: Iterable[DeviceToken]) -> List[DispatchBatch]:
        batches: List[DispatchBatch] = []
        for tenant_id, tokens in group_by_tenant(snapshot).items():
            valid = [token for token in tokens if self.push_service.is_valid_token(token)]
            dropped = len(tokens) - len(valid)
            if dropped:
                logger.warning(
                    "Dropping invalid push tokens",
                    extra={"tenant_id": tenant_id, "dropped_count": dropped},
                )
            batches.extend(chunk_tokens(tenant_id, valid, self.push_service.max_chunk_size))
        return batches

    def dispatch(self, event: AlertEvent) -> List[DispatchOutcome]:
        snapshot = self.registry.snapshot_all()
        if not snapshot:
            return []

        batches = self.build_batches(snapshot)
        futures: List[Future[DispatchOutcome]] = [
            self.executor.submit(self._send_batch, batch, event) for batch in batches
        ]
        outcomes = [self._collect(batch, future) for batch, future in zip(batches, futures)]

        failed = sum(1 for outcome in outcomes if outcome.status is DispatchStatus.failed)
        logger.info(
            "Alert fan-out finished with %d failed batches",
            failed,
            extra={"distance_cm": event.distance_cm, "outcome_count": len(outcomes)},
        )
        return outcomes

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _collect(self, batch: DispatchBatch, future: Future[DispatchOutcome]) -> DispatchOutcome:
        try:
            return future.result()
        except CancelledError:
            # Queued batches are cancelled when the pool shuts down mid-dispatch.
            logger.warning(
                "Push batch cancelled",
                extra={"tenant_id": batch.tenant_id, "batch_index": batch.index, "status": "failed"},
            )
            return _outcome(batch, DispatchStatus.failed, "Dispatch cancelled during shutdown")

    def _send_batch(self, batch: DispatchBatch, event: AlertEvent) -> DispatchOutcome:
        messages = [
            PushMessage(
                to=token,
                body=event.message,
                data={"distance": event.distance_cm},
                experience_id=batch.tenant_id,
            )
            for token in batch.tokens
        ]
        context = {
            "tenant_id": batch.tenant_id,
            "batch_index": batch.index,
            "token_count": len(batch.tokens),
        }
        try:
            self.push_service.send_batch(messages)
        except Exception as exc:  # noqa: BLE001 - any provider error fails only this batch
            logger.error(
                "Push batch failed", extra={**context, "status": "failed", "error": str(exc)}
            )
            return _outcome(batch, DispatchStatus.failed, str(exc) or exc.__class__.__name__)

        logger.info("Push batch sent", extra={**context, "status": "sent"})
        return _outcome(batch, DispatchStatus.sent)


def _outcome(
    batch: DispatchBatch, status: DispatchStatus, error: Optional[str] = None
) -> DispatchOutcome:
    return DispatchOutcome(
        tenant_id=batch.tenant_id,
        batch_index=batch.index,
        status=status,
        token_count=len(batch.tokens),
        error=error,
    )

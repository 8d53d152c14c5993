"""Review synchronizer — folds external review decisions into work items."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from edu_studio.models.review import ReviewStatus
from edu_studio.models.work_item import ItemStatus, ReviewStage
from edu_studio.store import MutationSource

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from edu_studio.config import ReviewSyncConfig
    from edu_studio.models.review import ReviewDecision
    from edu_studio.models.work_item import WorkItem
    from edu_studio.review.store import ReviewStore
    from edu_studio.store import WorkItemStore

logger = logging.getLogger(__name__)

_BOOKKEEPING_FIELDS = frozenset({"updated_at", "review_synced_at", "review_synced_keys"})


def _latest_per_stage(decisions: Iterable[ReviewDecision]) -> dict[ReviewStage, ReviewDecision]:
    latest: dict[ReviewStage, ReviewDecision] = {}
    for decision in decisions:
        current = latest.get(decision.stage)
        # Equal timestamps: the one observed later wins.
        if current is None or decision.timestamp >= current.timestamp:
            latest[decision.stage] = decision
    return latest


def _script_approval_time(
    decisions: Iterable[ReviewDecision], fallback: datetime
) -> datetime:
    approvals = [
        d.timestamp
        for d in decisions
        if d.stage == ReviewStage.SCRIPT and d.status == ReviewStatus.APPROVED
    ]
    return max(approvals) if approvals else fallback


def _clear_review_fields(item: WorkItem) -> None:
    item.review_stage = None
    item.rejected_stage = None
    item.rejected_comment = None


def _apply(item: WorkItem, decision: ReviewDecision, decisions: list[ReviewDecision]) -> None:
    if decision.stage == ReviewStage.FINAL:
        if decision.status == ReviewStatus.APPROVED:
            item.status = ItemStatus.APPROVED
            _clear_review_fields(item)
            if item.script_approved_at is None:
                item.script_approved_at = _script_approval_time(decisions, decision.timestamp)
        elif decision.status == ReviewStatus.REJECTED:
            item.status = ItemStatus.REJECTED
            item.review_stage = None
            item.rejected_stage = ReviewStage.FINAL
            item.rejected_comment = decision.comment
        else:
            item.status = ItemStatus.REVIEW_PENDING
            _clear_review_fields(item)
            item.review_stage = ReviewStage.FINAL
        return

    if decision.status == ReviewStatus.APPROVED:
        item.status = ItemStatus.DRAFT
        _clear_review_fields(item)
        if item.script_approved_at is None:
            item.script_approved_at = decision.timestamp
    elif decision.status == ReviewStatus.REJECTED:
        item.status = ItemStatus.REJECTED
        item.review_stage = None
        item.rejected_stage = ReviewStage.SCRIPT
        item.rejected_comment = decision.comment
        item.script_approved_at = None
    else:
        item.status = ItemStatus.REVIEW_PENDING
        _clear_review_fields(item)
        item.review_stage = ReviewStage.SCRIPT


def _is_fresh(item: WorkItem, decision: ReviewDecision) -> bool:
    synced_at = item.review_synced_at
    if synced_at is None or decision.timestamp > synced_at:
        return True
    return decision.timestamp == synced_at and decision.key not in item.review_synced_keys


def reconcile(item: WorkItem, decisions: Iterable[ReviewDecision]) -> WorkItem:
    """Return ``item`` with its newest review outcome applied.

    Only decisions not yet consumed take part: newer than
    ``item.review_synced_at``, or at that instant but missing from
    ``item.review_synced_keys``. Among the rest the latest decision per stage
    counts, and a FINAL decision outranks a SCRIPT one. ``updated_at`` moves to
    the decision's own timestamp, and only when a field changed.

    Pure and idempotent: with nothing new to apply, ``item`` itself is
    returned.
    """
    mine = [d for d in decisions if d.content_id == item.id]
    fresh = [d for d in mine if _is_fresh(item, d)]
    if len(fresh) < len(mine):
        logger.debug(
            "Skipping stale review decisions — item=%s count=%d",
            item.id,
            len(mine) - len(fresh),
        )
    if not fresh:
        return item
    if item.is_running:
        logger.debug("Deferring review decisions while generating — item=%s", item.id)
        return item

    latest = _latest_per_stage(fresh)
    decision = latest.get(ReviewStage.FINAL) or latest[ReviewStage.SCRIPT]

    updated = item.model_copy(deep=True)
    _apply(updated, decision, mine)
    watermark = max(d.timestamp for d in fresh)
    consumed = [d.key for d in fresh if d.timestamp == watermark]
    if watermark == item.review_synced_at:
        consumed = [*item.review_synced_keys, *consumed]
    updated.review_synced_at = watermark
    updated.review_synced_keys = list(dict.fromkeys(consumed))

    before = item.model_dump(exclude=_BOOKKEEPING_FIELDS)
    if updated.model_dump(exclude=_BOOKKEEPING_FIELDS) != before:
        updated.updated_at = max(item.updated_at, decision.timestamp)
        logger.info(
            "Applied review decision — item=%s stage=%s status=%s",
            item.id,
            decision.stage,
            decision.status,
        )
    return updated


class ReviewSynchronizer:
    """Pulls the decision ledger on an interval and reconciles affected items.

    Runs as a background task within the FastAPI lifespan. Decisions pushed
    through :meth:`apply_decision` go through the same reconciliation.
    """

    def __init__(
        self,
        store: WorkItemStore,
        review_store: ReviewStore,
        config: ReviewSyncConfig,
    ) -> None:
        self._store = store
        self._review_store = review_store
        self._config = config
        self._running = False
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start polling the Review Store in a background task."""
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info(
            "Review synchronizer started — interval=%.1fs", self._config.interval_seconds
        )

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        logger.info("Review synchronizer stopped")

    async def sync_once(self) -> list[WorkItem]:
        """Reconcile every stored item against the current ledger."""
        decisions = await self._review_store.list_decisions()
        by_item: dict[str, list[ReviewDecision]] = defaultdict(list)
        for decision in decisions:
            by_item[decision.content_id].append(decision)

        updated: list[WorkItem] = []
        for item_id, item_decisions in by_item.items():
            item = self._reconcile_item(item_id, item_decisions)
            if item is not None:
                updated.append(item)
        return updated

    async def apply_decision(self, decision: ReviewDecision) -> WorkItem | None:
        """Reconcile a single pushed decision; unknown items are ignored."""
        return self._reconcile_item(decision.content_id, [decision])

    def _reconcile_item(
        self, item_id: str, decisions: list[ReviewDecision]
    ) -> WorkItem | None:
        current = self._store.get(item_id)
        if current is None:
            logger.debug("Review decision for unknown item — item=%s", item_id)
            return None
        reconciled = reconcile(current, decisions)
        if reconciled is current:
            return None
        return self._store.replace(
            reconciled,
            expected_updated_at=current.updated_at,
            source=MutationSource.REVIEW,
        )

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.sync_once()
            except Exception:
                logger.exception("Error synchronizing review decisions")
            await asyncio.sleep(self._config.interval_seconds)

"""Work item store — the authoritative in-memory collection of content items.

All writes go through :meth:`WorkItemStore.insert`, :meth:`mutate`,
:meth:`replace` and :meth:`remove`. Each write works on a copy and commits it
in one step, so callers never observe a half-applied change, and each commit
is attributed to one :class:`MutationSource` in the audit trail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from edu_studio.catalog import (
    department_label,
    job_training_label,
    template_label,
)
from edu_studio.errors import ItemNotFound, StaleWriteError
from edu_studio.models.base import utcnow
from edu_studio.models.status_map import normalize_status
from edu_studio.models.work_item import (
    STATUS_LABELS,
    ItemStatus,
    Pipeline,
    PipelineState,
    WorkItem,
)
from edu_studio.policy import apply_category_rules, is_in_scope, normalize_dept_ids

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from edu_studio.catalog import CatalogProvider
    from edu_studio.models.scope import AuthoringScope

logger = logging.getLogger(__name__)

MSG_IMPORTED_WHILE_RUNNING = "가져오기 시점에 진행 중이던 자동 생성은 복구할 수 없습니다. 재시도해 주세요."
_CATEGORY_KIND_TEXT = {"JOB": "직무 job", "MANDATORY": "4대 mandatory"}
_COMPANY_WIDE_SEARCH_TEXT = "전사 전체 all company"


class MutationSource(StrEnum):
    AUTHORING = "AUTHORING"
    PIPELINE = "PIPELINE"
    REVIEW = "REVIEW"
    REWORK = "REWORK"


class ItemTab(StrEnum):
    ALL = "all"
    DRAFT = "draft"
    REVIEW_PENDING = "review_pending"
    REJECTED = "rejected"
    APPROVED = "approved"
    FAILED = "failed"


class SortMode(StrEnum):
    UPDATED_DESC = "updated_desc"
    UPDATED_ASC = "updated_asc"
    CREATED_DESC = "created_desc"
    CREATED_ASC = "created_asc"


_TAB_STATUSES: dict[ItemTab, frozenset[ItemStatus]] = {
    ItemTab.DRAFT: frozenset({ItemStatus.DRAFT, ItemStatus.GENERATING}),
    ItemTab.REVIEW_PENDING: frozenset({ItemStatus.REVIEW_PENDING}),
    ItemTab.REJECTED: frozenset({ItemStatus.REJECTED}),
    ItemTab.APPROVED: frozenset({ItemStatus.APPROVED}),
    ItemTab.FAILED: frozenset({ItemStatus.FAILED}),
}


@dataclass(frozen=True)
class AuditEntry:
    item_id: str
    source: MutationSource
    action: str
    at: datetime
    fields: tuple[str, ...] = ()


def _changed_fields(before: WorkItem, after: WorkItem) -> tuple[str, ...]:
    old = before.model_dump(exclude={"updated_at"})
    new = after.model_dump(exclude={"updated_at"})
    return tuple(key for key in new if old.get(key) != new[key])


class WorkItemStore:
    """Single-writer store of :class:`WorkItem` documents keyed by id."""

    def __init__(
        self,
        catalog: CatalogProvider,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._catalog = catalog
        self._clock = clock
        self._items: dict[str, WorkItem] = {}
        self._audit: list[AuditEntry] = []
        self._listeners: list[Callable[[WorkItem, MutationSource], None]] = []

    @property
    def catalog(self) -> CatalogProvider:
        return self._catalog

    def now(self) -> datetime:
        return self._clock()

    def add_listener(self, listener: Callable[[WorkItem, MutationSource], None]) -> None:
        """Register a callback invoked after every committed insert or update."""
        self._listeners.append(listener)

    # -- reads ---------------------------------------------------------------

    def get(self, item_id: str) -> WorkItem | None:
        return self._items.get(item_id)

    def require(self, item_id: str) -> WorkItem:
        item = self._items.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return item

    def all(self) -> list[WorkItem]:
        return list(self._items.values())

    def running_item(self) -> WorkItem | None:
        return next((item for item in self._items.values() if item.is_running), None)

    def audit(self, item_id: str | None = None) -> list[AuditEntry]:
        if item_id is None:
            return list(self._audit)
        return [entry for entry in self._audit if entry.item_id == item_id]

    # -- writes --------------------------------------------------------------

    def insert(self, item: WorkItem, source: MutationSource = MutationSource.AUTHORING) -> WorkItem:
        if item.id in self._items:
            msg = f"Work item already exists: {item.id}"
            raise ValueError(msg)
        self._items[item.id] = item
        self._record(item.id, source, "insert", ())
        self._notify(item, source)
        return item

    def mutate(
        self,
        item_id: str,
        source: MutationSource,
        fn: Callable[[WorkItem], None],
    ) -> WorkItem:
        """Apply ``fn`` to a copy of the item and commit it when anything changed.

        ``updated_at`` moves to the store clock only on an actual change. An
        exception raised by ``fn`` discards the copy.
        """
        current = self.require(item_id)
        draft = current.model_copy(deep=True)
        fn(draft)
        fields = _changed_fields(current, draft)
        if not fields:
            return current
        draft.updated_at = self.now()
        return self._commit(draft, source, fields)

    def replace(
        self,
        item: WorkItem,
        *,
        expected_updated_at: datetime,
        source: MutationSource,
    ) -> WorkItem:
        """Compare-and-swap the stored item for ``item`` as given.

        Raises :class:`StaleWriteError` when the stored revision no longer has
        ``expected_updated_at``.
        """
        current = self.require(item.id)
        if current.updated_at != expected_updated_at:
            raise StaleWriteError(item.id)
        fields = _changed_fields(current, item)
        if not fields and current.updated_at == item.updated_at:
            return current
        return self._commit(item, source, fields)

    def remove(self, item_id: str, source: MutationSource = MutationSource.AUTHORING) -> WorkItem:
        item = self.require(item_id)
        del self._items[item_id]
        self._record(item_id, source, "remove", ())
        return item

    def _commit(
        self, item: WorkItem, source: MutationSource, fields: tuple[str, ...]
    ) -> WorkItem:
        self._items[item.id] = item
        self._record(item.id, source, "update", fields)
        self._notify(item, source)
        return item

    def _record(
        self, item_id: str, source: MutationSource, action: str, fields: tuple[str, ...]
    ) -> None:
        entry = AuditEntry(
            item_id=item_id, source=source, action=action, at=self.now(), fields=fields
        )
        self._audit.append(entry)
        logger.debug(
            "Store %s — item=%s source=%s fields=%s",
            action,
            item_id,
            source,
            ",".join(fields),
        )

    def _notify(self, item: WorkItem, source: MutationSource) -> None:
        for listener in self._listeners:
            try:
                listener(item, source)
            except Exception:
                logger.exception("Store listener failed — item=%s", item.id)

    # -- listing -------------------------------------------------------------

    def list_items(
        self,
        *,
        tab: ItemTab = ItemTab.ALL,
        query: str = "",
        sort: SortMode = SortMode.UPDATED_DESC,
        scope: AuthoringScope | None = None,
    ) -> list[WorkItem]:
        """Filter, search and sort the items visible to ``scope``."""
        items = list(self._items.values())
        if scope is not None:
            items = [i for i in items if is_in_scope(i, scope)]
        if tab != ItemTab.ALL:
            statuses = _TAB_STATUSES[tab]
            items = [i for i in items if i.status in statuses]

        tokens = query.lower().split()
        if tokens:
            items = [i for i in items if _matches(self._search_text(i), tokens)]

        key, reverse = _SORT_KEYS[sort]
        return sorted(items, key=key, reverse=reverse)

    def _search_text(self, item: WorkItem) -> str:
        catalog = self._catalog
        category = next(
            (c for c in catalog.list_categories() if c.id == item.category_id), None
        )
        parts = [
            item.title,
            item.category_label,
            _CATEGORY_KIND_TEXT.get(category.kind, "") if category else "",
            STATUS_LABELS[item.status],
            item.status.value,
            f"v{item.version}",
        ]
        if item.target_dept_ids:
            parts.extend(department_label(catalog, d) for d in item.target_dept_ids)
        else:
            parts.append(_COMPANY_WIDE_SEARCH_TEXT)
        if item.primary_source_file is not None:
            parts.append(item.primary_source_file.name)
        parts.append(template_label(catalog, item.template_id))
        parts.append(job_training_label(catalog, item.job_training_id))
        return " ".join(part for part in parts if part).lower()

    # -- import --------------------------------------------------------------

    def load(self, raw_items: Iterable[dict[str, Any]]) -> list[WorkItem]:
        """Import external snapshots, normalizing legacy statuses.

        Items that claim a running pipeline cannot be resumed and are imported
        as failed. Existing ids are overwritten.
        """
        loaded: list[WorkItem] = []
        for raw in raw_items:
            data = dict(raw)
            normalized = normalize_status(data.pop("status", None))
            data["status"] = normalized.status
            if normalized.status == ItemStatus.REVIEW_PENDING and not data.get("review_stage"):
                data["review_stage"] = normalized.stage
            if normalized.status == ItemStatus.REJECTED and not data.get("rejected_stage"):
                data["rejected_stage"] = normalized.stage
            data["target_dept_ids"] = normalize_dept_ids(
                data.get("target_dept_ids") or [], self._catalog
            )

            item = WorkItem.model_validate(data)
            apply_category_rules(item, self._catalog)
            if item.is_running or item.status == ItemStatus.GENERATING:
                item.status = ItemStatus.FAILED
                item.failed_reason = MSG_IMPORTED_WHILE_RUNNING
                item.pipeline = Pipeline(
                    mode=item.pipeline.mode,
                    state=PipelineState.FAILED,
                    stage=item.pipeline.stage,
                    progress=item.pipeline.progress,
                    started_at=item.pipeline.started_at,
                    finished_at=self.now(),
                    message=MSG_IMPORTED_WHILE_RUNNING,
                )

            self._items[item.id] = item
            self._record(item.id, MutationSource.AUTHORING, "load", ())
            loaded.append(item)
        logger.info("Loaded work items — count=%d", len(loaded))
        return loaded


def _matches(text: str, tokens: list[str]) -> bool:
    return all(token in text for token in tokens)


_SORT_KEYS: dict[SortMode, tuple[Callable[[WorkItem], Any], bool]] = {
    SortMode.UPDATED_DESC: (lambda i: i.updated_at, True),
    SortMode.UPDATED_ASC: (lambda i: i.updated_at, False),
    SortMode.CREATED_DESC: (lambda i: i.created_at, True),
    SortMode.CREATED_ASC: (lambda i: i.created_at, False),
}

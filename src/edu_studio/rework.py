"""Rework — reopen a rejected item as a new, editable version."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from edu_studio.errors import CommandRejected
from edu_studio.models.work_item import ItemStatus, Pipeline, VersionSnapshot
from edu_studio.policy import apply_category_rules, apply_scope_rules

if TYPE_CHECKING:
    from datetime import datetime

    from edu_studio.catalog import CatalogProvider
    from edu_studio.models.scope import AuthoringScope
    from edu_studio.models.work_item import WorkItem

logger = logging.getLogger(__name__)

REWORK_REASON = "REJECTED → 새 버전 재작업"
MSG_NOT_REJECTED = "반려 상태에서만 재작업을 시작할 수 있습니다."


def reopen_for_rework(
    item: WorkItem,
    catalog: CatalogProvider,
    scope: AuthoringScope,
    now: datetime,
    reason: str = REWORK_REASON,
) -> WorkItem:
    """Archive the rejected version and return the next version as a draft.

    The script and source files carry over; video and thumbnail are cleared so
    the next submission always goes through regeneration. Stage-1 approval is
    dropped with the rejection.
    """
    if item.status != ItemStatus.REJECTED:
        raise CommandRejected(MSG_NOT_REJECTED)

    snapshot = VersionSnapshot.capture(item, reason=reason, recorded_at=now)
    reopened = item.model_copy(deep=True)
    reopened.version_history = (*item.version_history, snapshot)
    reopened.version = item.version + 1
    reopened.status = ItemStatus.DRAFT
    reopened.review_stage = None
    reopened.rejected_stage = None
    reopened.rejected_comment = None
    reopened.failed_reason = None
    reopened.script_approved_at = None
    reopened.video_url = ""
    reopened.thumbnail_url = ""
    reopened.pipeline = Pipeline(mode=item.pipeline.mode)

    apply_category_rules(reopened, catalog)
    apply_scope_rules(reopened, scope, catalog)
    reopened.updated_at = now

    logger.info(
        "Reopened for rework — item=%s version=%d->%d",
        item.id,
        item.version,
        reopened.version,
    )
    return reopened

"""Normalization of legacy and backend status vocabularies into ``ItemStatus``.

Older snapshots carry either the five-value creator vocabulary or the
document-centric backend vocabulary (``SCRIPT_READY``, ``VIDEO_READY``, ...).
Both are folded into one canonical status plus the review stage the value
implies. Approval is never inferred here: ``SCRIPT_APPROVED`` maps to DRAFT and
stage-1 approval still requires an explicit ``script_approved_at``.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from edu_studio.models.work_item import ItemStatus, ReviewStage

logger = logging.getLogger(__name__)


class NormalizedStatus(NamedTuple):
    status: ItemStatus
    stage: ReviewStage | None = None


_EXACT: dict[str, NormalizedStatus] = {
    "DRAFT": NormalizedStatus(ItemStatus.DRAFT),
    "CREATED": NormalizedStatus(ItemStatus.DRAFT),
    "SCRIPT_READY": NormalizedStatus(ItemStatus.DRAFT),
    "SCRIPT_APPROVED": NormalizedStatus(ItemStatus.DRAFT),
    "READY": NormalizedStatus(ItemStatus.DRAFT),
    "VIDEO_READY": NormalizedStatus(ItemStatus.DRAFT),
    "FINAL_READY": NormalizedStatus(ItemStatus.DRAFT),
    "GENERATING": NormalizedStatus(ItemStatus.GENERATING),
    "SCRIPT_GENERATING": NormalizedStatus(ItemStatus.GENERATING),
    "VIDEO_GENERATING": NormalizedStatus(ItemStatus.GENERATING),
    "PROCESSING": NormalizedStatus(ItemStatus.GENERATING),
    "RUNNING": NormalizedStatus(ItemStatus.GENERATING),
    "REVIEW_PENDING": NormalizedStatus(ItemStatus.REVIEW_PENDING),
    "IN_REVIEW": NormalizedStatus(ItemStatus.REVIEW_PENDING),
    "SCRIPT_REVIEW_REQUESTED": NormalizedStatus(
        ItemStatus.REVIEW_PENDING, ReviewStage.SCRIPT
    ),
    "SCRIPT_REVIEW_PENDING": NormalizedStatus(
        ItemStatus.REVIEW_PENDING, ReviewStage.SCRIPT
    ),
    "FINAL_REVIEW_REQUESTED": NormalizedStatus(
        ItemStatus.REVIEW_PENDING, ReviewStage.FINAL
    ),
    "FINAL_REVIEW_PENDING": NormalizedStatus(
        ItemStatus.REVIEW_PENDING, ReviewStage.FINAL
    ),
    "REJECTED": NormalizedStatus(ItemStatus.REJECTED),
    "SCRIPT_REJECTED": NormalizedStatus(ItemStatus.REJECTED, ReviewStage.SCRIPT),
    "FINAL_REJECTED": NormalizedStatus(ItemStatus.REJECTED, ReviewStage.FINAL),
    "APPROVED": NormalizedStatus(ItemStatus.APPROVED, ReviewStage.FINAL),
    "FINAL_APPROVED": NormalizedStatus(ItemStatus.APPROVED, ReviewStage.FINAL),
    "PUBLISHED": NormalizedStatus(ItemStatus.APPROVED, ReviewStage.FINAL),
    "DONE": NormalizedStatus(ItemStatus.APPROVED, ReviewStage.FINAL),
    "FAILED": NormalizedStatus(ItemStatus.FAILED),
    "ERROR": NormalizedStatus(ItemStatus.FAILED),
    "SCRIPT_FAILED": NormalizedStatus(ItemStatus.FAILED),
    "VIDEO_FAILED": NormalizedStatus(ItemStatus.FAILED),
}

# Substring fallbacks for values outside the table, checked in order.
_FRAGMENTS: tuple[tuple[str, NormalizedStatus], ...] = (
    ("REJECT", NormalizedStatus(ItemStatus.REJECTED)),
    ("REVIEW", NormalizedStatus(ItemStatus.REVIEW_PENDING)),
    ("FAIL", NormalizedStatus(ItemStatus.FAILED)),
    ("GENERATING", NormalizedStatus(ItemStatus.GENERATING)),
    ("PROCESSING", NormalizedStatus(ItemStatus.GENERATING)),
    ("PUBLISH", NormalizedStatus(ItemStatus.APPROVED, ReviewStage.FINAL)),
)


def normalize_status(raw: object) -> NormalizedStatus:
    """Map any known status spelling to the canonical status and implied stage."""
    value = raw.strip().upper() if isinstance(raw, str) else ""
    if not value:
        return NormalizedStatus(ItemStatus.DRAFT)

    exact = _EXACT.get(value)
    if exact is not None:
        return exact

    for fragment, normalized in _FRAGMENTS:
        if fragment in value:
            return normalized

    logger.warning("Unknown legacy status, treating as DRAFT — status=%s", raw)
    return NormalizedStatus(ItemStatus.DRAFT)

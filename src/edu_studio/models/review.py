"""Review decision and review request payloads exchanged with the Review Store."""

from __future__ import annotations

from enum import StrEnum

from pydantic import AwareDatetime, BaseModel

from edu_studio.models.work_item import ReviewStage


class ReviewStatus(StrEnum):
    REVIEW_PENDING = "REVIEW_PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ReviewDecision(BaseModel):
    """A reviewer outcome for one stage of one content item.

    Owned by the Review Store. ``timestamp`` must be timezone-aware; it is the
    only ordering key between decisions.
    """

    content_id: str
    stage: ReviewStage
    status: ReviewStatus
    comment: str | None = None
    timestamp: AwareDatetime

    @property
    def key(self) -> str:
        """Identity of this decision within the ledger."""
        return f"{self.content_id}:{self.stage}:{self.status}:{self.timestamp.isoformat()}"


class ReviewRequest(BaseModel):
    content_id: str
    title: str
    department: str
    creator_name: str
    content_category: str
    script_text: str
    video_url: str | None = None
    stage: ReviewStage

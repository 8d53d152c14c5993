"""Review Store clients — where review requests go and decisions come from."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

import httpx
from pydantic import ValidationError

from edu_studio.errors import ReviewStoreError
from edu_studio.models.base import utcnow
from edu_studio.models.review import ReviewDecision, ReviewRequest, ReviewStatus

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from edu_studio.config import ReviewStoreConfig
    from edu_studio.models.work_item import ReviewStage

logger = logging.getLogger(__name__)


class ReviewStore(Protocol):
    async def submit_review_request(self, request: ReviewRequest) -> None: ...

    async def list_decisions(self) -> list[ReviewDecision]: ...


class InMemoryReviewStore:
    """Review ledger held in process.

    Submitting a request also records a ``REVIEW_PENDING`` decision for its
    stage, the way a reviewer queue acknowledges new work.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self.requests: list[ReviewRequest] = []
        self._decisions: list[ReviewDecision] = []

    async def submit_review_request(self, request: ReviewRequest) -> None:
        self.requests.append(request)
        self.record_decision(request.content_id, request.stage, ReviewStatus.REVIEW_PENDING)
        logger.info(
            "Review requested — item=%s stage=%s", request.content_id, request.stage
        )

    async def list_decisions(self) -> list[ReviewDecision]:
        return list(self._decisions)

    def record_decision(
        self,
        content_id: str,
        stage: ReviewStage,
        status: ReviewStatus,
        *,
        comment: str | None = None,
        timestamp: datetime | None = None,
    ) -> ReviewDecision:
        decision = ReviewDecision(
            content_id=content_id,
            stage=stage,
            status=status,
            comment=comment,
            timestamp=timestamp or self._clock(),
        )
        self._decisions.append(decision)
        return decision


class HttpReviewStore:
    """Review Store reached over HTTP.

    ``POST /review-requests`` submits a request; ``GET /review-decisions``
    returns the decision ledger. Entries without a valid timezone-aware
    timestamp are dropped.
    """

    def __init__(
        self,
        config: ReviewStoreConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url, timeout=config.timeout_seconds
        )

    async def submit_review_request(self, request: ReviewRequest) -> None:
        try:
            response = await self._client.post(
                "/review-requests", json=request.model_dump(mode="json")
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            msg = f"Review request failed for item {request.content_id}: {exc}"
            raise ReviewStoreError(msg) from exc

    async def list_decisions(self) -> list[ReviewDecision]:
        try:
            response = await self._client.get("/review-decisions")
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            msg = f"Listing review decisions failed: {exc}"
            raise ReviewStoreError(msg) from exc

        entries = payload.get("items", []) if isinstance(payload, dict) else payload
        decisions: list[ReviewDecision] = []
        for entry in entries:
            try:
                decisions.append(ReviewDecision.model_validate(entry))
            except ValidationError:
                logger.warning(
                    "Dropping malformed review decision — content_id=%s",
                    entry.get("content_id") if isinstance(entry, dict) else None,
                )
        return decisions

    async def close(self) -> None:
        await self._client.aclose()

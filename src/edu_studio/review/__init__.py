"""Review subsystem — Review Store clients, reconciliation and decision events."""

from edu_studio.review.store import (
    HttpReviewStore,
    InMemoryReviewStore,
    ReviewStore,
    ReviewStoreError,
)
from edu_studio.review.sync import ReviewSynchronizer, reconcile

__all__ = [
    "HttpReviewStore",
    "InMemoryReviewStore",
    "ReviewStore",
    "ReviewStoreError",
    "ReviewSynchronizer",
    "reconcile",
]

"""Exception hierarchy for the studio core.

Validation findings are never raised; they travel as ``ValidationResult`` data.
The exceptions below cover refused commands and admission failures.
"""

from __future__ import annotations


class StudioError(Exception):
    """Base class for all studio errors."""


class ItemNotFound(StudioError):
    def __init__(self, item_id: str) -> None:
        super().__init__(f"Work item not found: {item_id}")
        self.item_id = item_id


class CommandRejected(StudioError):
    """An authoring command is not permitted in the item's current state."""

    def __init__(self, message: str, *, issues: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.issues = issues or []


class PreconditionFailed(CommandRejected):
    """A pipeline run was refused because the item fails its run checks."""

    def __init__(self, issues: list[str]) -> None:
        super().__init__(
            issues[0] if issues else "자동 생성 조건을 확인해주세요.", issues=issues
        )


class ConcurrencyConflict(StudioError):
    """Another work item already has a generation job running."""

    def __init__(self, running_item_id: str) -> None:
        super().__init__(
            "다른 콘텐츠의 자동 생성이 진행 중입니다. 완료 후 다시 시도해 주세요."
        )
        self.running_item_id = running_item_id


class StaleWriteError(StudioError):
    """A compare-and-swap write lost against a newer revision of the item."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"Work item {item_id} was modified concurrently")
        self.item_id = item_id


class GenerationError(StudioError):
    """Raised by a generation backend when a job fails."""


class ReviewStoreError(StudioError):
    """The Review Store could not be reached or answered with an error."""

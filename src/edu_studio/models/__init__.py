"""Data models for work items, review payloads, catalog options and scope."""

from edu_studio.models.catalog import (
    Category,
    CategoryKind,
    Department,
    JobTraining,
    VideoTemplate,
)
from edu_studio.models.review import ReviewDecision, ReviewRequest, ReviewStatus
from edu_studio.models.scope import AuthoringScope, CreatorType
from edu_studio.models.validation import FileCheck, Issue, IssueKind, ValidationResult
from edu_studio.models.work_item import (
    ItemStatus,
    Pipeline,
    PipelineMode,
    PipelineStage,
    PipelineState,
    ReviewStage,
    SourceFile,
    VersionSnapshot,
    WorkItem,
)

__all__ = [
    "AuthoringScope",
    "Category",
    "CategoryKind",
    "CreatorType",
    "Department",
    "FileCheck",
    "Issue",
    "IssueKind",
    "ItemStatus",
    "JobTraining",
    "Pipeline",
    "PipelineMode",
    "PipelineStage",
    "PipelineState",
    "ReviewDecision",
    "ReviewRequest",
    "ReviewStage",
    "ReviewStatus",
    "SourceFile",
    "ValidationResult",
    "VersionSnapshot",
    "VideoTemplate",
    "WorkItem",
]

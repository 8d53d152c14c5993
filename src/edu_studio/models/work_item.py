"""Work item model — one educational content item moving through production."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

from edu_studio.models.base import DocumentBase, new_id, utcnow


class ItemStatus(StrEnum):
    DRAFT = "DRAFT"
    GENERATING = "GENERATING"
    REVIEW_PENDING = "REVIEW_PENDING"
    REJECTED = "REJECTED"
    APPROVED = "APPROVED"
    FAILED = "FAILED"


class ReviewStage(StrEnum):
    SCRIPT = "SCRIPT"
    FINAL = "FINAL"


class PipelineMode(StrEnum):
    SCRIPT_ONLY = "SCRIPT_ONLY"
    VIDEO_ONLY = "VIDEO_ONLY"
    FULL = "FULL"


class PipelineState(StrEnum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class PipelineStage(StrEnum):
    UPLOAD = "UPLOAD"
    SCRIPT = "SCRIPT"
    VIDEO = "VIDEO"
    THUMBNAIL = "THUMBNAIL"
    DONE = "DONE"


# Statuses in which the authoring side may not edit the item at all.
LOCKED_STATUSES = frozenset(
    {
        ItemStatus.REVIEW_PENDING,
        ItemStatus.APPROVED,
        ItemStatus.REJECTED,
        ItemStatus.GENERATING,
    }
)

STATUS_LABELS: dict[ItemStatus, str] = {
    ItemStatus.DRAFT: "초안",
    ItemStatus.GENERATING: "생성 중",
    ItemStatus.REVIEW_PENDING: "검토 대기",
    ItemStatus.REJECTED: "반려",
    ItemStatus.APPROVED: "승인 완료",
    ItemStatus.FAILED: "실패",
}


class SourceFile(BaseModel):
    """Metadata of an uploaded source document; the bytes live elsewhere."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("file"))
    name: str
    size: int
    mime: str | None = None
    added_at: datetime = Field(default_factory=utcnow)


class Pipeline(BaseModel):
    mode: PipelineMode = PipelineMode.FULL
    state: PipelineState = PipelineState.IDLE
    stage: PipelineStage | None = None
    progress: int = Field(default=0, ge=0, le=100)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    message: str | None = None


class VersionSnapshot(BaseModel):
    """Immutable archive of one version of a work item, taken at rework time."""

    model_config = ConfigDict(frozen=True)

    version: int
    status: ItemStatus
    title: str
    category_id: str
    category_label: str
    template_id: str
    job_training_id: str | None
    target_dept_ids: tuple[str, ...]
    is_mandatory: bool
    source_files: tuple[SourceFile, ...]
    script: str
    video_url: str
    thumbnail_url: str
    script_approved_at: datetime | None
    rejected_stage: ReviewStage | None
    rejected_comment: str | None
    reason: str
    recorded_at: datetime

    @classmethod
    def capture(cls, item: WorkItem, *, reason: str, recorded_at: datetime) -> VersionSnapshot:
        return cls(
            version=item.version,
            status=item.status,
            title=item.title,
            category_id=item.category_id,
            category_label=item.category_label,
            template_id=item.template_id,
            job_training_id=item.job_training_id,
            target_dept_ids=tuple(item.target_dept_ids),
            is_mandatory=item.is_mandatory,
            source_files=tuple(item.source_files),
            script=item.script,
            video_url=item.video_url,
            thumbnail_url=item.thumbnail_url,
            script_approved_at=item.script_approved_at,
            rejected_stage=item.rejected_stage,
            rejected_comment=item.rejected_comment,
            reason=reason,
            recorded_at=recorded_at,
        )


class WorkItem(DocumentBase):
    """An educational content item and its full production state.

    ``script_approved_at`` is the only signal that stage-1 review passed;
    nothing else (status text, history) implies approval.
    """

    version: int = Field(default=1, ge=1)
    version_history: tuple[VersionSnapshot, ...] = ()

    title: str = ""
    category_id: str = ""
    category_label: str = ""
    template_id: str = ""
    job_training_id: str | None = None
    target_dept_ids: list[str] = Field(default_factory=list)
    is_mandatory: bool = False

    source_files: list[SourceFile] = Field(default_factory=list)
    script: str = ""
    video_url: str = ""
    thumbnail_url: str = ""

    status: ItemStatus = ItemStatus.DRAFT
    script_approved_at: datetime | None = None
    review_stage: ReviewStage | None = None
    rejected_stage: ReviewStage | None = None
    rejected_comment: str | None = None
    failed_reason: str | None = None
    review_synced_at: datetime | None = None
    review_synced_keys: list[str] = Field(default_factory=list)

    pipeline: Pipeline = Field(default_factory=Pipeline)
    created_by_name: str = ""

    @property
    def primary_source_file(self) -> SourceFile | None:
        return self.source_files[0] if self.source_files else None

    @property
    def has_script(self) -> bool:
        return bool(self.script.strip())

    @property
    def has_video(self) -> bool:
        return bool(self.video_url.strip())

    @property
    def has_generated_output(self) -> bool:
        return self.has_video or self.pipeline.state == PipelineState.SUCCESS

    @property
    def is_stage1_approved(self) -> bool:
        return self.script_approved_at is not None

    @property
    def is_running(self) -> bool:
        return self.pipeline.state == PipelineState.RUNNING

    @property
    def is_locked_for_edit(self) -> bool:
        """True while the item is read-only for every authoring command."""
        return self.status in LOCKED_STATUSES or self.is_running

    @property
    def is_content_locked(self) -> bool:
        """True when metadata, file and script edits are refused."""
        return self.is_locked_for_edit or self.is_stage1_approved

    def clear_generated_output(self) -> None:
        """Drop script, video and thumbnail and reset the pipeline to idle."""
        self.script = ""
        self.video_url = ""
        self.thumbnail_url = ""
        self.script_approved_at = None
        self.pipeline = Pipeline(mode=self.pipeline.mode)

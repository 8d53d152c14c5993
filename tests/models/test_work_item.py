"""Tests for the WorkItem model and its derived predicates."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from edu_studio.models.work_item import (
    ItemStatus,
    Pipeline,
    PipelineMode,
    PipelineState,
    VersionSnapshot,
    WorkItem,
)
from tests.factories import pdf

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class TestWorkItemDefaults:
    def test_new_item_is_first_version_draft(self) -> None:
        item = WorkItem()

        assert item.version == 1
        assert item.version_history == ()
        assert item.status == ItemStatus.DRAFT
        assert item.pipeline.state == PipelineState.IDLE
        assert item.script_approved_at is None
        assert item.id.startswith("item_")

    def test_version_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            WorkItem(version=0)

    def test_primary_source_file_is_first(self) -> None:
        first, second = pdf("a.pdf"), pdf("b.pdf")
        item = WorkItem(source_files=[first, second])
        assert item.primary_source_file == first
        assert WorkItem().primary_source_file is None


class TestEditLocks:
    @pytest.mark.parametrize(
        "status",
        [
            ItemStatus.REVIEW_PENDING,
            ItemStatus.APPROVED,
            ItemStatus.REJECTED,
            ItemStatus.GENERATING,
        ],
    )
    def test_locked_statuses(self, status: ItemStatus) -> None:
        assert WorkItem(status=status).is_locked_for_edit is True

    @pytest.mark.parametrize("status", [ItemStatus.DRAFT, ItemStatus.FAILED])
    def test_editable_statuses(self, status: ItemStatus) -> None:
        assert WorkItem(status=status).is_locked_for_edit is False

    def test_running_pipeline_locks(self) -> None:
        item = WorkItem(pipeline=Pipeline(state=PipelineState.RUNNING))
        assert item.is_locked_for_edit is True

    def test_stage1_approval_locks_content_only(self) -> None:
        item = WorkItem(script_approved_at=NOW)
        assert item.is_locked_for_edit is False
        assert item.is_content_locked is True


class TestGeneratedOutput:
    def test_video_counts_as_output(self) -> None:
        assert WorkItem(video_url="https://v/1.mp4").has_generated_output is True

    def test_successful_run_counts_as_output(self) -> None:
        item = WorkItem(pipeline=Pipeline(state=PipelineState.SUCCESS))
        assert item.has_generated_output is True

    def test_clear_generated_output_resets_pipeline(self) -> None:
        item = WorkItem(
            script="본문",
            video_url="https://v/1.mp4",
            thumbnail_url="https://t/1.jpg",
            pipeline=Pipeline(
                mode=PipelineMode.SCRIPT_ONLY, state=PipelineState.SUCCESS, progress=100
            ),
        )

        item.clear_generated_output()

        assert (item.script, item.video_url, item.thumbnail_url) == ("", "", "")
        assert item.pipeline == Pipeline(mode=PipelineMode.SCRIPT_ONLY)


class TestVersionSnapshot:
    def test_capture_copies_editable_fields(self) -> None:
        item = WorkItem(
            title="안전 교육",
            target_dept_ids=["D001"],
            source_files=[pdf()],
            script="본문",
            status=ItemStatus.REJECTED,
        )

        snapshot = VersionSnapshot.capture(item, reason="rework", recorded_at=NOW)

        assert snapshot.version == 1
        assert snapshot.title == "안전 교육"
        assert snapshot.target_dept_ids == ("D001",)
        assert snapshot.script == "본문"
        assert snapshot.reason == "rework"
        assert snapshot.recorded_at == NOW

    def test_snapshot_is_immutable(self) -> None:
        snapshot = VersionSnapshot.capture(WorkItem(), reason="r", recorded_at=NOW)
        with pytest.raises(ValidationError):
            snapshot.title = "changed"

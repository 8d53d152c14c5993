"""Tests for reopening rejected items as a new version."""

from datetime import UTC, datetime

import pytest

from edu_studio.errors import CommandRejected
from edu_studio.models.work_item import (
    ItemStatus,
    Pipeline,
    PipelineMode,
    PipelineState,
    ReviewStage,
)
from edu_studio.rework import REWORK_REASON, reopen_for_rework
from tests.factories import MANDATORY_CATEGORY

NOW = datetime(2026, 3, 5, 10, 0, tzinfo=UTC)
APPROVED_AT = datetime(2026, 3, 3, 10, 0, tzinfo=UTC)


@pytest.fixture
def rejected(make_item):
    return make_item(
        insert=False,
        status=ItemStatus.REJECTED,
        script="승인된 스크립트",
        script_approved_at=APPROVED_AT,
        video_url="https://cdn.example.invalid/v1.mp4",
        thumbnail_url="https://cdn.example.invalid/v1.jpg",
        rejected_stage=ReviewStage.FINAL,
        rejected_comment="자막 오탈자 수정 필요",
        pipeline=Pipeline(
            mode=PipelineMode.VIDEO_ONLY, state=PipelineState.SUCCESS, progress=100
        ),
    )


class TestReopenForRework:
    def test_bumps_version_and_archives_previous(self, rejected, catalog, global_scope) -> None:
        reopened = reopen_for_rework(rejected, catalog, global_scope, NOW)

        assert reopened.version == 2
        assert reopened.status == ItemStatus.DRAFT
        assert len(reopened.version_history) == 1
        snapshot = reopened.version_history[0]
        assert snapshot.version == 1
        assert snapshot.status == ItemStatus.REJECTED
        assert snapshot.rejected_comment == "자막 오탈자 수정 필요"
        assert snapshot.video_url == "https://cdn.example.invalid/v1.mp4"
        assert snapshot.reason == REWORK_REASON
        assert snapshot.recorded_at == NOW

    def test_clears_review_state_and_media(self, rejected, catalog, global_scope) -> None:
        reopened = reopen_for_rework(rejected, catalog, global_scope, NOW)

        assert reopened.script_approved_at is None
        assert reopened.rejected_stage is None
        assert reopened.rejected_comment is None
        assert reopened.review_stage is None
        assert reopened.video_url == ""
        assert reopened.thumbnail_url == ""
        assert reopened.pipeline == Pipeline(mode=PipelineMode.VIDEO_ONLY)
        assert reopened.updated_at == NOW

    def test_keeps_script_and_sources(self, rejected, catalog, global_scope) -> None:
        reopened = reopen_for_rework(rejected, catalog, global_scope, NOW)

        assert reopened.script == "승인된 스크립트"
        assert reopened.source_files == rejected.source_files
        assert reopened.title == rejected.title

    def test_input_is_not_modified(self, rejected, catalog, global_scope) -> None:
        reopen_for_rework(rejected, catalog, global_scope, NOW)
        assert rejected.version == 1
        assert rejected.status == ItemStatus.REJECTED

    def test_history_accumulates(self, rejected, catalog, global_scope) -> None:
        v2 = reopen_for_rework(rejected, catalog, global_scope, NOW)
        v2.status = ItemStatus.REJECTED

        v3 = reopen_for_rework(v2, catalog, global_scope, NOW, reason="재반려")

        assert v3.version == 3
        assert [s.version for s in v3.version_history] == [1, 2]
        assert v3.version_history[-1].reason == "재반려"

    def test_reapplies_policy(self, make_item, catalog, dept_scope) -> None:
        item = make_item(
            insert=False,
            status=ItemStatus.REJECTED,
            target_dept_ids=["D002"],
            is_mandatory=True,
        )

        reopened = reopen_for_rework(item, catalog, dept_scope, NOW)

        assert reopened.target_dept_ids == ["D001"]
        assert reopened.is_mandatory is False

    def test_mandatory_category_stays_company_wide(
        self, make_item, catalog, global_scope
    ) -> None:
        item = make_item(
            insert=False,
            status=ItemStatus.REJECTED,
            category_id=MANDATORY_CATEGORY,
            target_dept_ids=["D001"],
        )

        reopened = reopen_for_rework(item, catalog, global_scope, NOW)

        assert reopened.target_dept_ids == []
        assert reopened.is_mandatory is True
        assert reopened.job_training_id is None

    @pytest.mark.parametrize(
        "status", [ItemStatus.DRAFT, ItemStatus.APPROVED, ItemStatus.REVIEW_PENDING]
    )
    def test_only_rejected_items(self, make_item, catalog, global_scope, status) -> None:
        item = make_item(insert=False, status=status)
        with pytest.raises(CommandRejected):
            reopen_for_rework(item, catalog, global_scope, NOW)

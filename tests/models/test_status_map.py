"""Tests for legacy status normalization."""

import logging

import pytest

from edu_studio.models.status_map import NormalizedStatus, normalize_status
from edu_studio.models.work_item import ItemStatus, ReviewStage


class TestNormalizeStatus:
    """Both vocabularies fold into one canonical status."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("DRAFT", ItemStatus.DRAFT),
            ("SCRIPT_READY", ItemStatus.DRAFT),
            ("VIDEO_READY", ItemStatus.DRAFT),
            ("READY", ItemStatus.DRAFT),
            ("SCRIPT_GENERATING", ItemStatus.GENERATING),
            ("PROCESSING", ItemStatus.GENERATING),
            ("REVIEW_PENDING", ItemStatus.REVIEW_PENDING),
            ("REJECTED", ItemStatus.REJECTED),
            ("PUBLISHED", ItemStatus.APPROVED),
            ("DONE", ItemStatus.APPROVED),
            ("ERROR", ItemStatus.FAILED),
            ("FAILED", ItemStatus.FAILED),
        ],
    )
    def test_known_values(self, raw: str, expected: ItemStatus) -> None:
        assert normalize_status(raw).status == expected

    def test_script_approved_does_not_imply_approval(self) -> None:
        """Approval text maps to DRAFT; only script_approved_at carries approval."""
        assert normalize_status("SCRIPT_APPROVED") == NormalizedStatus(ItemStatus.DRAFT)

    def test_review_requests_carry_stage(self) -> None:
        assert normalize_status("SCRIPT_REVIEW_REQUESTED") == NormalizedStatus(
            ItemStatus.REVIEW_PENDING, ReviewStage.SCRIPT
        )
        assert normalize_status("FINAL_REVIEW_REQUESTED") == NormalizedStatus(
            ItemStatus.REVIEW_PENDING, ReviewStage.FINAL
        )

    def test_case_and_whitespace_insensitive(self) -> None:
        assert normalize_status("  published ").status == ItemStatus.APPROVED

    def test_fragment_fallback(self) -> None:
        assert normalize_status("VIDEO_REJECTED_BY_ADMIN").status == ItemStatus.REJECTED
        assert normalize_status("WAITING_REVIEW").status == ItemStatus.REVIEW_PENDING

    @pytest.mark.parametrize("raw", [None, "", 42])
    def test_missing_values_map_to_draft(self, raw: object) -> None:
        assert normalize_status(raw).status == ItemStatus.DRAFT

    def test_unknown_value_logs_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="edu_studio.models.status_map"):
            result = normalize_status("ARCHIVED")

        assert result.status == ItemStatus.DRAFT
        assert "ARCHIVED" in caplog.text

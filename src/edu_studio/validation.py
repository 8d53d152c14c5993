"""Validation engine — pure checks gating review submission and pipeline runs.

Every check runs; issues are collected and returned, never raised.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from edu_studio.catalog import has_job_training, has_template, is_job_category
from edu_studio.models.validation import FileCheck, Issue, IssueKind, ValidationResult
from edu_studio.models.work_item import (
    ItemStatus,
    PipelineMode,
    PipelineState,
    ReviewStage,
)
from edu_studio.policy import scope_issues

if TYPE_CHECKING:
    from edu_studio.catalog import CatalogProvider
    from edu_studio.models.scope import AuthoringScope
    from edu_studio.models.work_item import WorkItem

ALLOWED_EXTENSIONS = frozenset({"pdf", "doc", "docx", "ppt", "pptx", "hwp", "hwpx"})
MAX_SOURCE_FILE_SIZE_BYTES = 50 * 1024 * 1024
MAX_SOURCE_FILE_NAME_LENGTH = 160
MIN_TITLE_LENGTH = 3

MSG_TITLE = "제목을 3자 이상 입력해주세요."
MSG_CATEGORY = "카테고리를 선택해주세요."
MSG_TEMPLATE = "영상 템플릿을 선택해주세요."
MSG_JOB_TRAINING = "직무교육(Training ID)을 선택해주세요."
MSG_SOURCE_MISSING = "교육 자료 파일을 업로드해주세요."
MSG_SOURCE_MULTIPLE = "교육 자료 파일은 1개만 첨부할 수 있습니다."
MSG_SOURCE_EXTENSION = (
    "교육 자료 파일 형식이 올바르지 않습니다. PDF/DOC/DOCX/PPT/PPTX/HWP/HWPX만 허용됩니다."
)
MSG_SOURCE_TOO_LARGE = "교육 자료 파일이 너무 큽니다. (최대 50MB)"
MSG_SOURCE_EMPTY = "교육 자료 파일 크기가 0B 입니다."
MSG_SCRIPT_MISSING = "스크립트가 준비되지 않았습니다. (소스셋 생성/스크립트 생성 후 다시 시도)"
MSG_STAGE1_REQUIRED = "1차(스크립트) 승인이 완료되어야 최종 검토 요청이 가능합니다."
MSG_VIDEO_MISSING = "영상이 생성되지 않았습니다."
MSG_PIPELINE_RUNNING = "자동 생성이 진행 중입니다. 완료 후 검토 요청이 가능합니다."
MSG_PIPELINE_FAILED = "자동 생성이 실패했습니다. 재시도 후 검토 요청이 가능합니다."
MSG_NOT_DRAFT = "초안 상태에서만 검토 요청이 가능합니다."
MSG_RUN_LOCKED = "검토 대기/승인/반려/생성 중 상태에서는 자동 생성을 실행할 수 없습니다."
MSG_RUN_STAGE1_REQUIRED = "1차(스크립트) 승인이 완료되어야 영상을 생성할 수 있습니다."
MSG_RUN_STAGE1_DONE = "1차(스크립트) 승인 이후에는 스크립트를 다시 생성할 수 없습니다."

MSG_FILE_NAME_EMPTY = "파일명이 비어있습니다."
MSG_FILE_SIZE_ZERO = "파일 크기가 0B 입니다."
MSG_FILE_TOO_LARGE = "파일이 너무 큽니다. (최대 50MB)"
MSG_FILE_EXTENSION = "지원하지 않는 파일 형식입니다. (PDF/DOC/DOCX/PPT/PPTX/HWP/HWPX)"
MSG_FILE_NAME_CLEANED = "파일명에 포함된 특수/제어 문자를 정리했습니다."
MSG_FILE_NAME_TRUNCATED = "파일명이 너무 길어 일부가 잘렸습니다."


def sanitize_file_name(raw: str) -> str:
    """Strip any directory part and control characters, then cap the length."""
    base = raw.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = "".join(ch for ch in base if ord(ch) > 0x1F and ord(ch) != 0x7F)
    return cleaned.strip()[:MAX_SOURCE_FILE_NAME_LENGTH]


def file_extension(name: str) -> str:
    return os.path.splitext(name)[1].lstrip(".").lower()


def is_allowed_source_file_name(name: str) -> bool:
    return file_extension(name) in ALLOWED_EXTENSIONS


def check_source_file(name: str, size: int, mime: str | None = None) -> FileCheck:
    """Re-validate metadata reported by the file transport."""
    issues: list[str] = []
    warnings: list[str] = []

    clean = sanitize_file_name(name)
    if clean != name.strip():
        warnings.append(MSG_FILE_NAME_CLEANED)
    if not clean:
        issues.append(MSG_FILE_NAME_EMPTY)
    if len(clean) >= MAX_SOURCE_FILE_NAME_LENGTH:
        warnings.append(MSG_FILE_NAME_TRUNCATED)

    if size <= 0:
        issues.append(MSG_FILE_SIZE_ZERO)
    if size > MAX_SOURCE_FILE_SIZE_BYTES:
        issues.append(MSG_FILE_TOO_LARGE)
    if clean and not is_allowed_source_file_name(clean):
        issues.append(MSG_FILE_EXTENSION)

    return FileCheck(
        ok=not issues,
        name=clean,
        size=size,
        mime=mime or None,
        issues=issues,
        warnings=warnings,
    )


def _source_file_messages(item: WorkItem) -> list[str]:
    primary = item.primary_source_file
    if primary is None:
        return [MSG_SOURCE_MISSING]

    messages: list[str] = []
    if len(item.source_files) > 1:
        messages.append(MSG_SOURCE_MULTIPLE)
    if not is_allowed_source_file_name(primary.name):
        messages.append(MSG_SOURCE_EXTENSION)
    if primary.size <= 0:
        messages.append(MSG_SOURCE_EMPTY)
    elif primary.size > MAX_SOURCE_FILE_SIZE_BYTES:
        messages.append(MSG_SOURCE_TOO_LARGE)
    return messages


def _catalog_messages(item: WorkItem, catalog: CatalogProvider) -> list[str]:
    messages: list[str] = []
    if not has_template(catalog, item.template_id):
        messages.append(MSG_TEMPLATE)
    if is_job_category(catalog, item.category_id) and not has_job_training(
        catalog, item.job_training_id
    ):
        messages.append(MSG_JOB_TRAINING)
    return messages


def _result(messages: list[str], scope_findings: list[Issue]) -> ValidationResult:
    findings = [Issue(kind=IssueKind.VALIDATION, message=m) for m in messages]
    return ValidationResult(findings=findings + scope_findings)


def validate_for_review(
    item: WorkItem,
    scope: AuthoringScope,
    mode: ReviewStage,
    catalog: CatalogProvider,
) -> ValidationResult:
    """Decide whether ``item`` may be submitted for ``mode`` review."""
    messages: list[str] = []

    if len(item.title.strip()) < MIN_TITLE_LENGTH:
        messages.append(MSG_TITLE)
    if not item.category_id:
        messages.append(MSG_CATEGORY)
    messages.extend(_catalog_messages(item, catalog))
    messages.extend(_source_file_messages(item))

    if mode == ReviewStage.SCRIPT:
        if not item.has_script:
            messages.append(MSG_SCRIPT_MISSING)
    else:
        if not item.is_stage1_approved:
            messages.append(MSG_STAGE1_REQUIRED)
        if not item.has_video:
            messages.append(MSG_VIDEO_MISSING)

    if item.pipeline.state == PipelineState.RUNNING:
        messages.append(MSG_PIPELINE_RUNNING)
    if item.pipeline.state == PipelineState.FAILED:
        messages.append(MSG_PIPELINE_FAILED)
    if item.status != ItemStatus.DRAFT:
        messages.append(MSG_NOT_DRAFT)

    return _result(messages, scope_issues(item, scope, catalog))


def validate_for_run(
    item: WorkItem,
    scope: AuthoringScope,
    mode: PipelineMode,
    catalog: CatalogProvider,
) -> ValidationResult:
    """Decide whether a ``mode`` generation job may start for ``item``."""
    messages: list[str] = []

    if item.is_locked_for_edit:
        messages.append(MSG_RUN_LOCKED)
    messages.extend(_catalog_messages(item, catalog))
    messages.extend(_source_file_messages(item))

    if mode == PipelineMode.VIDEO_ONLY:
        if not item.is_stage1_approved:
            messages.append(MSG_RUN_STAGE1_REQUIRED)
        if not item.has_script:
            messages.append(MSG_SCRIPT_MISSING)
    elif item.is_stage1_approved:
        messages.append(MSG_RUN_STAGE1_DONE)

    return _result(messages, scope_issues(item, scope, catalog))

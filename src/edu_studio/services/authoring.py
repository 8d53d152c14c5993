"""Authoring business logic — the commands a creator issues against work items."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from edu_studio.catalog import (
    department_label,
    ensure_category_id,
    ensure_template_id,
)
from edu_studio.errors import CommandRejected, ItemNotFound
from edu_studio.models.catalog import CategoryKind
from edu_studio.models.review import ReviewRequest
from edu_studio.models.work_item import ItemStatus, ReviewStage, SourceFile, WorkItem
from edu_studio.policy import (
    apply_category_rules,
    apply_scope_rules,
    ensure_in_scope,
    is_in_scope,
    normalize_dept_ids,
    restrict_to_scope,
    scope_issues,
)
from edu_studio.rework import reopen_for_rework
from edu_studio.store import MutationSource
from edu_studio.validation import check_source_file, validate_for_review

if TYPE_CHECKING:
    from edu_studio.catalog import CatalogProvider
    from edu_studio.models.scope import AuthoringScope
    from edu_studio.models.validation import ValidationResult
    from edu_studio.models.work_item import PipelineMode
    from edu_studio.pipeline.executor import PipelineExecutor
    from edu_studio.review.store import ReviewStore
    from edu_studio.store import WorkItemStore

logger = logging.getLogger(__name__)

MSG_LOCKED = "검토 대기/승인/반려/생성 중 상태에서는 편집할 수 없습니다."
MSG_FILES_LOCKED = "검토 대기/승인/반려/생성 중 상태에서는 파일을 변경할 수 없습니다."
MSG_STAGE1_LOCKED = "1차(스크립트) 승인 이후에는 기본 정보를 수정할 수 없습니다."
MSG_DELETE_STATUS = "초안/실패 상태만 삭제할 수 있습니다."
MSG_DELETE_APPROVED = "1차(스크립트) 승인 이후에는 삭제할 수 없습니다."
MSG_DUPLICATE_FILE = "이미 추가된 파일입니다."
MSG_FILE_NOT_FOUND = "파일을 찾을 수 없습니다."
MSG_REVIEW_CHANGED = "검토 요청 중 콘텐츠 상태가 변경되었습니다. 다시 시도해 주세요."

# Fields whose change invalidates generated output.
_INVALIDATING_FIELDS = (
    "title",
    "category_id",
    "template_id",
    "job_training_id",
    "is_mandatory",
    "target_dept_ids",
)


class MetadataPatch(BaseModel):
    """Requested metadata changes; ``None`` leaves a field untouched."""

    title: str | None = None
    category_id: str | None = None
    template_id: str | None = None
    job_training_id: str | None = None
    target_dept_ids: list[str] | None = None
    is_mandatory: bool | None = None


class FileUpload(BaseModel):
    """File metadata as reported by the file transport."""

    name: str
    size: int
    mime: str | None = None


class CommandResult(BaseModel):
    item: WorkItem
    issues: list[str] = Field(default_factory=list)


def _ensure_editable(item: WorkItem, locked_message: str = MSG_LOCKED) -> None:
    if item.is_locked_for_edit:
        raise CommandRejected(locked_message)
    if item.is_stage1_approved:
        raise CommandRejected(MSG_STAGE1_LOCKED)


def _reset_after_file_change(item: WorkItem) -> None:
    item.clear_generated_output()
    if item.status == ItemStatus.FAILED:
        item.status = ItemStatus.DRAFT
        item.failed_reason = None


def get_item(store: WorkItemStore, scope: AuthoringScope, item_id: str) -> WorkItem:
    """Return an item the caller may see; others read as missing."""
    item = store.require(item_id)
    if not is_in_scope(item, scope):
        raise ItemNotFound(item_id)
    return item


def _invalidation_snapshot(item: WorkItem) -> tuple[object, ...]:
    return tuple(getattr(item, name) for name in _INVALIDATING_FIELDS)


def create_draft(
    store: WorkItemStore,
    scope: AuthoringScope,
    *,
    title: str = "",
    category_id: str | None = None,
) -> WorkItem:
    """Create a new DRAFT item with catalog defaults valid for ``scope``."""
    catalog = store.catalog
    kind = CategoryKind.JOB if scope.is_dept_creator else None
    item = WorkItem(
        title=title,
        category_id=ensure_category_id(catalog, category_id, kind=kind),
        template_id=ensure_template_id(catalog, None),
        created_by_name=scope.creator_name,
    )
    if scope.is_dept_creator:
        item.target_dept_ids = restrict_to_scope([], scope, catalog)
    apply_category_rules(item, catalog)
    apply_scope_rules(item, scope, catalog)
    item.created_at = item.updated_at = store.now()
    store.insert(item, MutationSource.AUTHORING)
    logger.info("Draft created — item=%s creator=%s", item.id, scope.creator_name)
    return item


def _apply_patch(item: WorkItem, patch: MetadataPatch, catalog: CatalogProvider) -> None:
    if patch.title is not None:
        item.title = patch.title
    if patch.category_id is not None:
        item.category_id = ensure_category_id(catalog, patch.category_id)
    if patch.template_id is not None:
        item.template_id = ensure_template_id(catalog, patch.template_id)
    if patch.job_training_id is not None:
        item.job_training_id = patch.job_training_id
    if patch.target_dept_ids is not None:
        item.target_dept_ids = normalize_dept_ids(patch.target_dept_ids, catalog)
    if patch.is_mandatory is not None:
        item.is_mandatory = patch.is_mandatory
    apply_category_rules(item, catalog)


def update_metadata(
    store: WorkItemStore,
    scope: AuthoringScope,
    item_id: str,
    patch: MetadataPatch,
) -> CommandResult:
    """Apply a metadata patch.

    The returned issues are the scope findings for the values as requested;
    what gets stored is the normalized selection (a department creator's
    disallowed departments are dropped, mandatory categories are locked to
    company-wide). Changing an invalidating field on an item with generated
    output clears that output.
    """
    catalog = store.catalog
    item = store.require(item_id)
    ensure_in_scope(item, scope)
    _ensure_editable(item)

    requested = item.model_copy(deep=True)
    _apply_patch(requested, patch, catalog)
    issues = [issue.message for issue in scope_issues(requested, scope, catalog)]

    def _update(draft: WorkItem) -> None:
        before = _invalidation_snapshot(draft)
        had_output = draft.has_generated_output
        _apply_patch(draft, patch, catalog)
        apply_scope_rules(draft, scope, catalog)
        if had_output and _invalidation_snapshot(draft) != before:
            draft.clear_generated_output()
            logger.info("Generated output invalidated by edit — item=%s", draft.id)

    updated = store.mutate(item_id, MutationSource.AUTHORING, _update)
    if issues:
        logger.info("Metadata scope findings — item=%s count=%d", item_id, len(issues))
    return CommandResult(item=updated, issues=issues)


def add_source_files(
    store: WorkItemStore,
    scope: AuthoringScope,
    item_id: str,
    files: list[FileUpload],
) -> CommandResult:
    """Attach re-validated files; invalid files and duplicate names are skipped."""
    item = store.require(item_id)
    ensure_in_scope(item, scope)
    _ensure_editable(item, MSG_FILES_LOCKED)

    issues: list[str] = []
    accepted: list[SourceFile] = []
    seen = {f.name.strip().lower() for f in item.source_files}
    for upload in files:
        check = check_source_file(upload.name, upload.size, upload.mime)
        if not check.ok:
            issues.extend(f"{check.name or upload.name}: {msg}" for msg in check.issues)
            continue
        if check.name.lower() in seen:
            issues.append(f"{check.name}: {MSG_DUPLICATE_FILE}")
            continue
        seen.add(check.name.lower())
        accepted.append(
            SourceFile(name=check.name, size=check.size, mime=check.mime, added_at=store.now())
        )

    if not accepted:
        return CommandResult(item=item, issues=issues)

    def _attach(draft: WorkItem) -> None:
        draft.source_files = [*draft.source_files, *accepted]
        _reset_after_file_change(draft)

    updated = store.mutate(item_id, MutationSource.AUTHORING, _attach)
    logger.info("Source files added — item=%s count=%d", item_id, len(accepted))
    return CommandResult(item=updated, issues=issues)


def remove_source_file(
    store: WorkItemStore, scope: AuthoringScope, item_id: str, file_id: str
) -> WorkItem:
    item = store.require(item_id)
    ensure_in_scope(item, scope)
    _ensure_editable(item, MSG_FILES_LOCKED)
    if all(f.id != file_id for f in item.source_files):
        raise CommandRejected(MSG_FILE_NOT_FOUND)

    def _detach(draft: WorkItem) -> None:
        draft.source_files = [f for f in draft.source_files if f.id != file_id]
        _reset_after_file_change(draft)

    return store.mutate(item_id, MutationSource.AUTHORING, _detach)


def update_script(
    store: WorkItemStore, scope: AuthoringScope, item_id: str, text: str
) -> WorkItem:
    """Replace the script text; a changed script drops any stale video."""
    item = store.require(item_id)
    ensure_in_scope(item, scope)
    _ensure_editable(item)

    def _edit(draft: WorkItem) -> None:
        if draft.script == text:
            return
        draft.script = text
        if draft.has_video:
            draft.video_url = ""
            draft.thumbnail_url = ""

    return store.mutate(item_id, MutationSource.AUTHORING, _edit)


def run_pipeline(
    executor: PipelineExecutor,
    scope: AuthoringScope,
    item_id: str,
    mode: PipelineMode,
) -> WorkItem:
    return executor.run(item_id, mode, scope)


def retry(executor: PipelineExecutor, scope: AuthoringScope, item_id: str) -> WorkItem:
    return executor.retry(item_id, scope)


def review_stage_for(item: WorkItem) -> ReviewStage:
    """Stage 2 once stage 1 is approved, stage 1 otherwise."""
    return ReviewStage.FINAL if item.is_stage1_approved else ReviewStage.SCRIPT


def _department_text(item: WorkItem, catalog: CatalogProvider) -> str:
    if not item.target_dept_ids:
        return "전사"
    return ", ".join(department_label(catalog, d) for d in item.target_dept_ids)


async def request_review(
    store: WorkItemStore,
    review_store: ReviewStore,
    scope: AuthoringScope,
    item_id: str,
) -> ValidationResult:
    """Validate and, when clean, submit the item for its next review stage.

    Returns the validation result; the item only moves to REVIEW_PENDING when
    it is ``ok`` and the Review Store accepted the request.
    """
    catalog = store.catalog
    item = store.require(item_id)
    ensure_in_scope(item, scope)
    stage = review_stage_for(item)
    result = validate_for_review(item, scope, stage, catalog)
    if not result.ok:
        return result

    request = ReviewRequest(
        content_id=item.id,
        title=item.title,
        department=_department_text(item, catalog),
        creator_name=item.created_by_name or scope.creator_name,
        content_category=item.category_label,
        script_text=item.script,
        video_url=item.video_url if stage == ReviewStage.FINAL else None,
        stage=stage,
    )
    await review_store.submit_review_request(request)

    def _submit(draft: WorkItem) -> None:
        if draft.status != ItemStatus.DRAFT or draft.is_running:
            raise CommandRejected(MSG_REVIEW_CHANGED)
        draft.status = ItemStatus.REVIEW_PENDING
        draft.review_stage = stage
        draft.rejected_stage = None
        draft.rejected_comment = None

    store.mutate(item_id, MutationSource.AUTHORING, _submit)
    logger.info("Review submitted — item=%s stage=%s", item_id, stage)
    return result


def reopen_rejected(store: WorkItemStore, scope: AuthoringScope, item_id: str) -> WorkItem:
    item = store.require(item_id)
    ensure_in_scope(item, scope)
    reopened = reopen_for_rework(item, store.catalog, scope, store.now())
    return store.replace(
        reopened,
        expected_updated_at=item.updated_at,
        source=MutationSource.REWORK,
    )


def delete_draft(store: WorkItemStore, scope: AuthoringScope, item_id: str) -> None:
    """Physically remove a DRAFT or FAILED item that never passed stage 1."""
    item = store.require(item_id)
    ensure_in_scope(item, scope)
    if item.is_running or item.status not in (ItemStatus.DRAFT, ItemStatus.FAILED):
        raise CommandRejected(MSG_DELETE_STATUS)
    if item.is_stage1_approved:
        raise CommandRejected(MSG_DELETE_APPROVED)
    store.remove(item_id, MutationSource.AUTHORING)
    logger.info("Draft deleted — item=%s", item_id)


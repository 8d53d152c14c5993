"""Scope and category policy shared by validation, authoring and rework."""

from __future__ import annotations

from typing import TYPE_CHECKING

from edu_studio.catalog import (
    category_label,
    ensure_job_training_id,
    is_job_category,
    is_mandatory_category,
)
from edu_studio.errors import CommandRejected
from edu_studio.models.validation import Issue, IssueKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from edu_studio.catalog import CatalogProvider
    from edu_studio.models.scope import AuthoringScope
    from edu_studio.models.work_item import WorkItem

COMPANY_WIDE_NAMES = frozenset({"전체 부서", "전사", "all"})

MSG_DEPT_CANNOT_AUTHOR_MANDATORY = (
    "부서 제작자는 4대 의무교육(전사 필수) 콘텐츠를 제작할 수 없습니다."
)
MSG_MANDATORY_COMPANY_WIDE = "4대 의무교육은 전사 대상으로 고정됩니다."
MSG_MANDATORY_FLAG_FIXED = "4대 의무교육은 필수 교육으로 고정됩니다."
MSG_DEPT_CANNOT_SET_MANDATORY = "부서 제작자는 필수 교육 여부를 설정할 수 없습니다."
MSG_DEPT_REQUIRED = "부서 제작자는 대상 부서를 최소 1개 이상 선택해야 합니다."
MSG_DEPT_NOT_ALLOWED = "대상 부서에 허용되지 않은 부서가 포함되어 있습니다."
MSG_OUT_OF_SCOPE = "담당 부서 범위 밖의 콘텐츠는 변경할 수 없습니다."


def _is_company_wide_name(value: str) -> bool:
    return value in COMPANY_WIDE_NAMES or value.lower() == "all"


def normalize_dept_ids(raw: Iterable[str], catalog: CatalogProvider) -> list[str]:
    """Clean a department selection.

    Blank entries and duplicates are dropped, department names are mapped to
    their ids, and any company-wide marker collapses the whole selection to
    ``[]``.
    """
    values = [str(value).strip() for value in raw]
    values = [value for value in values if value]
    if any(_is_company_wide_name(value) for value in values):
        return []

    known_ids = {d.id for d in catalog.list_departments()}
    by_name = {d.name.strip().lower(): d.id for d in catalog.list_departments()}

    result: list[str] = []
    for value in values:
        dept_id = value if value in known_ids else by_name.get(value.lower(), value)
        if dept_id not in result:
            result.append(dept_id)
    return result


def restrict_to_scope(
    dept_ids: list[str], scope: AuthoringScope, catalog: CatalogProvider
) -> list[str]:
    """Drop departments outside a department creator's grant.

    When nothing remains, fall back to the first granted department that the
    catalog knows, so a department creator never persists an empty selection.
    """
    if not scope.is_dept_creator:
        return dept_ids
    kept = [dept_id for dept_id in dept_ids if dept_id in scope.allowed_dept_ids]
    if kept:
        return kept
    known_ids = {d.id for d in catalog.list_departments()}
    fallback = next((d for d in scope.allowed_dept_ids if d in known_ids), None)
    return [fallback] if fallback else []


def apply_category_rules(item: WorkItem, catalog: CatalogProvider) -> None:
    """Derive the category label and enforce the fields a category kind fixes."""
    item.category_label = category_label(catalog, item.category_id)
    if is_mandatory_category(catalog, item.category_id):
        item.is_mandatory = True
        item.target_dept_ids = []
        item.job_training_id = None
    elif is_job_category(catalog, item.category_id):
        item.job_training_id = ensure_job_training_id(catalog, item.job_training_id)


def apply_scope_rules(item: WorkItem, scope: AuthoringScope, catalog: CatalogProvider) -> None:
    """Normalize a department creator's selection after category rules ran."""
    if not scope.is_dept_creator or is_mandatory_category(catalog, item.category_id):
        return
    item.is_mandatory = False
    item.target_dept_ids = restrict_to_scope(item.target_dept_ids, scope, catalog)


def scope_issues(
    item: WorkItem, scope: AuthoringScope, catalog: CatalogProvider
) -> list[Issue]:
    messages: list[str] = []
    mandatory = is_mandatory_category(catalog, item.category_id)

    if mandatory:
        if scope.is_dept_creator:
            messages.append(MSG_DEPT_CANNOT_AUTHOR_MANDATORY)
        if not item.is_mandatory:
            messages.append(MSG_MANDATORY_FLAG_FIXED)
        if item.target_dept_ids:
            messages.append(MSG_MANDATORY_COMPANY_WIDE)

    if scope.is_dept_creator:
        if not mandatory and item.is_mandatory:
            messages.append(MSG_DEPT_CANNOT_SET_MANDATORY)
        if not item.target_dept_ids:
            messages.append(MSG_DEPT_REQUIRED)
        elif any(not scope.allows_dept(dept_id) for dept_id in item.target_dept_ids):
            messages.append(MSG_DEPT_NOT_ALLOWED)

    return [Issue(kind=IssueKind.SCOPE, message=message) for message in messages]


def is_in_scope(item: WorkItem, scope: AuthoringScope) -> bool:
    """A department creator owns items that target one of their departments."""
    if not scope.is_dept_creator:
        return True
    if item.is_mandatory:
        return False
    return any(dept_id in scope.allowed_dept_ids for dept_id in item.target_dept_ids)


def ensure_in_scope(item: WorkItem, scope: AuthoringScope) -> None:
    if not is_in_scope(item, scope):
        raise CommandRejected(MSG_OUT_OF_SCOPE)

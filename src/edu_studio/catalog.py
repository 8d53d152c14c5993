"""Catalog provider — selectable categories, departments, templates and trainings.

The catalog contents are owned elsewhere; the core only needs stable ids and
labels. Unknown ids never raise: lookups return ``None`` and the ``ensure_*``
helpers fall back to the first valid option.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from edu_studio.models.catalog import (
    Category,
    CategoryKind,
    Department,
    JobTraining,
    VideoTemplate,
)

if TYPE_CHECKING:
    from collections.abc import Sequence


class CatalogProvider(Protocol):
    def list_categories(self) -> Sequence[Category]: ...

    def list_departments(self) -> Sequence[Department]: ...

    def list_templates(self) -> Sequence[VideoTemplate]: ...

    def list_job_trainings(self) -> Sequence[JobTraining]: ...


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(id="job-onboarding", name="직무 온보딩", kind=CategoryKind.JOB),
    Category(id="job-sales", name="영업 직무교육", kind=CategoryKind.JOB),
    Category(id="job-dev", name="개발 직무교육", kind=CategoryKind.JOB),
    Category(
        id="mandatory-harassment",
        name="직장 내 성희롱 예방교육",
        kind=CategoryKind.MANDATORY,
    ),
    Category(id="mandatory-privacy", name="개인정보 보호교육", kind=CategoryKind.MANDATORY),
    Category(id="mandatory-safety", name="산업안전 보건교육", kind=CategoryKind.MANDATORY),
    Category(
        id="mandatory-disability",
        name="장애인 인식 개선교육",
        kind=CategoryKind.MANDATORY,
    ),
)

DEFAULT_DEPARTMENTS: tuple[Department, ...] = (
    Department(id="D001", name="경영지원팀"),
    Department(id="D002", name="인사팀"),
    Department(id="D003", name="영업팀"),
    Department(id="D004", name="개발팀"),
    Department(id="D005", name="마케팅팀"),
)

DEFAULT_TEMPLATES: tuple[VideoTemplate, ...] = (
    VideoTemplate(id="tpl-basic", name="기본 템플릿", description="단색 배경, 하단 자막"),
    VideoTemplate(id="tpl-whiteboard", name="화이트보드", description="손글씨 강조형"),
    VideoTemplate(id="tpl-newsroom", name="뉴스룸", description="앵커 진행형"),
)

DEFAULT_JOB_TRAININGS: tuple[JobTraining, ...] = (
    JobTraining(id="JT-001", name="신규 입사자 직무 온보딩"),
    JobTraining(id="JT-002", name="영업 프로세스 기초"),
    JobTraining(id="JT-003", name="코드 리뷰 실무"),
)


class StaticCatalog:
    """In-process catalog backed by fixed option lists."""

    def __init__(
        self,
        *,
        categories: Sequence[Category] = DEFAULT_CATEGORIES,
        departments: Sequence[Department] = DEFAULT_DEPARTMENTS,
        templates: Sequence[VideoTemplate] = DEFAULT_TEMPLATES,
        job_trainings: Sequence[JobTraining] = DEFAULT_JOB_TRAININGS,
    ) -> None:
        self._categories = tuple(categories)
        self._departments = tuple(departments)
        self._templates = tuple(templates)
        self._job_trainings = tuple(job_trainings)

    def list_categories(self) -> Sequence[Category]:
        return self._categories

    def list_departments(self) -> Sequence[Department]:
        return self._departments

    def list_templates(self) -> Sequence[VideoTemplate]:
        return self._templates

    def list_job_trainings(self) -> Sequence[JobTraining]:
        return self._job_trainings


def find_category(catalog: CatalogProvider, category_id: str | None) -> Category | None:
    return next((c for c in catalog.list_categories() if c.id == category_id), None)


def is_mandatory_category(catalog: CatalogProvider, category_id: str | None) -> bool:
    category = find_category(catalog, category_id)
    return category is not None and category.kind == CategoryKind.MANDATORY


def is_job_category(catalog: CatalogProvider, category_id: str | None) -> bool:
    category = find_category(catalog, category_id)
    return category is not None and category.kind == CategoryKind.JOB


def has_template(catalog: CatalogProvider, template_id: str | None) -> bool:
    return any(t.id == template_id for t in catalog.list_templates())


def has_job_training(catalog: CatalogProvider, job_training_id: str | None) -> bool:
    return any(j.id == job_training_id for j in catalog.list_job_trainings())


def ensure_category_id(
    catalog: CatalogProvider,
    category_id: str | None,
    *,
    kind: CategoryKind | None = None,
) -> str:
    """Return ``category_id`` when known (and of ``kind``), otherwise the first match."""
    category = find_category(catalog, category_id)
    if category is not None and (kind is None or category.kind == kind):
        return category.id
    candidates = [
        c for c in catalog.list_categories() if kind is None or c.kind == kind
    ]
    return candidates[0].id if candidates else ""


def ensure_template_id(catalog: CatalogProvider, template_id: str | None) -> str:
    if has_template(catalog, template_id):
        return str(template_id)
    templates = catalog.list_templates()
    return templates[0].id if templates else ""


def ensure_job_training_id(
    catalog: CatalogProvider, job_training_id: str | None
) -> str | None:
    if has_job_training(catalog, job_training_id):
        return job_training_id
    trainings = catalog.list_job_trainings()
    return trainings[0].id if trainings else None


def category_label(catalog: CatalogProvider, category_id: str | None) -> str:
    category = find_category(catalog, category_id)
    return category.name if category else ""


def department_label(catalog: CatalogProvider, dept_id: str) -> str:
    return next((d.name for d in catalog.list_departments() if d.id == dept_id), dept_id)


def template_label(catalog: CatalogProvider, template_id: str | None) -> str:
    return next((t.name for t in catalog.list_templates() if t.id == template_id), "")


def job_training_label(catalog: CatalogProvider, job_training_id: str | None) -> str:
    return next(
        (j.name for j in catalog.list_job_trainings() if j.id == job_training_id), ""
    )

"""Shared fixtures for studio tests."""

from __future__ import annotations

import random

import pytest

from edu_studio.catalog import StaticCatalog
from edu_studio.config import PipelineConfig, ReviewSyncConfig
from edu_studio.models.scope import AuthoringScope, CreatorType
from edu_studio.models.work_item import WorkItem
from edu_studio.pipeline.backend import SimulatedBackend
from edu_studio.pipeline.executor import PipelineExecutor
from edu_studio.review.store import InMemoryReviewStore
from edu_studio.review.sync import ReviewSynchronizer
from edu_studio.store import WorkItemStore
from tests.factories import JOB_CATEGORY, JOB_TRAINING, TEMPLATE, FakeClock, pdf


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog() -> StaticCatalog:
    return StaticCatalog()


@pytest.fixture
def store(catalog, clock) -> WorkItemStore:
    return WorkItemStore(catalog, clock=clock)


@pytest.fixture
def global_scope() -> AuthoringScope:
    return AuthoringScope(creator_type=CreatorType.GLOBAL_CREATOR, creator_name="김교육")


@pytest.fixture
def dept_scope() -> AuthoringScope:
    return AuthoringScope(
        creator_type=CreatorType.DEPT_CREATOR,
        allowed_dept_ids=("D001",),
        creator_name="이부서",
    )


@pytest.fixture
def pipeline_config() -> PipelineConfig:
    return PipelineConfig(tick_seconds=0, min_step=30, max_step=40, timeout_seconds=5)


@pytest.fixture
def backend(pipeline_config) -> SimulatedBackend:
    return SimulatedBackend(pipeline_config, rng=random.Random(7))


@pytest.fixture
def executor(store, backend, pipeline_config) -> PipelineExecutor:
    return PipelineExecutor(store, backend, pipeline_config)


@pytest.fixture
def review_store(clock) -> InMemoryReviewStore:
    return InMemoryReviewStore(clock=clock)


@pytest.fixture
def synchronizer(store, review_store) -> ReviewSynchronizer:
    return ReviewSynchronizer(store, review_store, ReviewSyncConfig(interval_seconds=0.01))


@pytest.fixture
def make_item(store, clock):
    """Build (and by default insert) a draft with complete metadata and one PDF."""

    def _make(*, insert: bool = True, **overrides) -> WorkItem:
        now = clock()
        fields = {
            "title": "신입 온보딩 교육",
            "category_id": JOB_CATEGORY,
            "category_label": "직무 온보딩",
            "template_id": TEMPLATE,
            "job_training_id": JOB_TRAINING,
            "target_dept_ids": ["D001"],
            "source_files": [pdf()],
            "created_by_name": "김교육",
            "created_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        item = WorkItem(**fields)
        if insert:
            store.insert(item)
        return item

    return _make

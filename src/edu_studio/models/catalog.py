"""Catalog option models — categories, departments, templates, job trainings."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class CategoryKind(StrEnum):
    JOB = "JOB"
    MANDATORY = "MANDATORY"


class _Option(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Category(_Option):
    kind: CategoryKind


class Department(_Option):
    pass


class VideoTemplate(_Option):
    description: str | None = None


class JobTraining(_Option):
    pass

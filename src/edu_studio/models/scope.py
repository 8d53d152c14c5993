"""Authoring scope supplied by the identity provider for each caller."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class CreatorType(StrEnum):
    DEPT_CREATOR = "DEPT_CREATOR"
    GLOBAL_CREATOR = "GLOBAL_CREATOR"


class AuthoringScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    creator_type: CreatorType
    allowed_dept_ids: tuple[str, ...] = ()
    creator_name: str = ""

    @property
    def is_dept_creator(self) -> bool:
        return self.creator_type == CreatorType.DEPT_CREATOR

    def allows_dept(self, dept_id: str) -> bool:
        return not self.is_dept_creator or dept_id in self.allowed_dept_ids

"""Authoring scope — read from headers set by the identity gateway."""

from __future__ import annotations

from urllib.parse import unquote

from fastapi import HTTPException, Request, status

from edu_studio.models.scope import AuthoringScope, CreatorType

CREATOR_TYPE_HEADER = "X-Creator-Type"
CREATOR_DEPTS_HEADER = "X-Creator-Depts"
CREATOR_NAME_HEADER = "X-Creator-Name"


def get_scope(request: Request) -> AuthoringScope | None:
    """Build the caller's scope from gateway headers, if present and valid.

    Department ids are comma-separated; the display name may be
    percent-encoded so non-ASCII names survive header transport.
    """
    raw_type = request.headers.get(CREATOR_TYPE_HEADER, "").strip().upper()
    try:
        creator_type = CreatorType(raw_type)
    except ValueError:
        return None

    raw_depts = request.headers.get(CREATOR_DEPTS_HEADER, "")
    dept_ids = tuple(d.strip() for d in raw_depts.split(",") if d.strip())
    name = unquote(request.headers.get(CREATOR_NAME_HEADER, "")).strip()
    return AuthoringScope(
        creator_type=creator_type, allowed_dept_ids=dept_ids, creator_name=name
    )


def require_scope(request: Request) -> AuthoringScope:
    """Return the caller's scope or raise HTTP 401."""
    scope = get_scope(request)
    if scope is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authoring scope required",
        )
    return scope

"""Work item routes — list, author, generate, review, rework, delete."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from edu_studio.auth import require_scope
from edu_studio.models.scope import AuthoringScope
from edu_studio.models.work_item import PipelineMode, ReviewStage
from edu_studio.services import authoring
from edu_studio.services.authoring import FileUpload, MetadataPatch
from edu_studio.store import ItemTab, SortMode
from edu_studio.validation import validate_for_review

router = APIRouter(prefix="/items", tags=["items"])

Scope = Annotated[AuthoringScope, Depends(require_scope)]


class CreateDraftBody(BaseModel):
    title: str = ""
    category_id: str | None = None


class ScriptBody(BaseModel):
    text: str


class RunBody(BaseModel):
    mode: PipelineMode


def _dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json")


@router.get("")
async def list_items(
    request: Request,
    scope: Scope,
    tab: ItemTab = ItemTab.ALL,
    q: str = "",
    sort: SortMode = SortMode.UPDATED_DESC,
):
    """List the items visible to the caller."""
    store = request.app.state.store
    items = store.list_items(tab=tab, query=q, sort=sort, scope=scope)
    return {"items": [_dump(item) for item in items]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_item(request: Request, scope: Scope, body: CreateDraftBody):
    store = request.app.state.store
    item = authoring.create_draft(
        store, scope, title=body.title, category_id=body.category_id
    )
    return _dump(item)


@router.get("/{item_id}")
async def get_item(request: Request, scope: Scope, item_id: str):
    return _dump(authoring.get_item(request.app.state.store, scope, item_id))


@router.patch("/{item_id}")
async def update_item(request: Request, scope: Scope, item_id: str, patch: MetadataPatch):
    result = authoring.update_metadata(request.app.state.store, scope, item_id, patch)
    return _dump(result)


@router.post("/{item_id}/files")
async def add_files(
    request: Request,
    scope: Scope,
    item_id: str,
    files: list[FileUpload],
):
    result = authoring.add_source_files(request.app.state.store, scope, item_id, files)
    return _dump(result)


@router.delete("/{item_id}/files/{file_id}")
async def remove_file(request: Request, scope: Scope, item_id: str, file_id: str):
    item = authoring.remove_source_file(request.app.state.store, scope, item_id, file_id)
    return _dump(item)


@router.put("/{item_id}/script")
async def put_script(request: Request, scope: Scope, item_id: str, body: ScriptBody):
    item = authoring.update_script(request.app.state.store, scope, item_id, body.text)
    return _dump(item)


@router.post("/{item_id}/pipeline", status_code=status.HTTP_202_ACCEPTED)
async def run_pipeline(request: Request, scope: Scope, item_id: str, body: RunBody):
    """Admit a generation job; progress is observed by re-reading the item."""
    item = authoring.run_pipeline(request.app.state.executor, scope, item_id, body.mode)
    return _dump(item)


@router.post("/{item_id}/retry", status_code=status.HTTP_202_ACCEPTED)
async def retry_pipeline(request: Request, scope: Scope, item_id: str):
    item = authoring.retry(request.app.state.executor, scope, item_id)
    return _dump(item)


@router.get("/{item_id}/validation")
async def check_review(
    request: Request,
    scope: Scope,
    item_id: str,
    mode: ReviewStage | None = None,
):
    """Dry-run review validation for the item's next (or the given) stage."""
    store = request.app.state.store
    item = authoring.get_item(store, scope, item_id)
    stage = mode or authoring.review_stage_for(item)
    return _dump(validate_for_review(item, scope, stage, store.catalog))


@router.post("/{item_id}/review")
async def request_review(request: Request, scope: Scope, item_id: str):
    result = await authoring.request_review(
        request.app.state.store, request.app.state.review_store, scope, item_id
    )
    if not result.ok:
        return JSONResponse(status_code=422, content=_dump(result))
    return _dump(result)


@router.post("/{item_id}/rework")
async def rework_item(request: Request, scope: Scope, item_id: str):
    item = authoring.reopen_rejected(request.app.state.store, scope, item_id)
    return _dump(item)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(request: Request, scope: Scope, item_id: str):
    authoring.delete_draft(request.app.state.store, scope, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{item_id}/audit")
async def item_audit(request: Request, scope: Scope, item_id: str):
    store = request.app.state.store
    authoring.get_item(store, scope, item_id)
    return {
        "entries": [
            {
                "source": entry.source.value,
                "action": entry.action,
                "at": entry.at.isoformat(),
                "fields": list(entry.fields),
            }
            for entry in store.audit(item_id)
        ]
    }

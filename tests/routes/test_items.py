"""Tests for the work item HTTP routes."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from edu_studio.app import create_app
from edu_studio.config import (
    AppConfig,
    MonitorConfig,
    PipelineConfig,
    ReviewStoreConfig,
    ReviewSyncConfig,
    ServiceBusConfig,
    Settings,
)
from edu_studio.policy import MSG_OUT_OF_SCOPE
from edu_studio.validation import MSG_SCRIPT_MISSING

GLOBAL_HEADERS = {
    "X-Creator-Type": "GLOBAL_CREATOR",
    "X-Creator-Name": "%EA%B9%80%EA%B5%90%EC%9C%A1",
}
DEPT_HEADERS = {"X-Creator-Type": "DEPT_CREATOR", "X-Creator-Depts": "D001"}


class BlockingBackend:
    """Backend whose jobs never finish until cancelled."""

    async def generate(self, item, mode, on_progress):
        await asyncio.Event().wait()


def _settings() -> Settings:
    return Settings(
        app=AppConfig(env="test", log_level="INFO"),
        pipeline=PipelineConfig(tick_seconds=0, min_step=30, max_step=40, timeout_seconds=5),
        review_sync=ReviewSyncConfig(interval_seconds=60),
        review_store=ReviewStoreConfig(base_url="", timeout_seconds=1),
        servicebus=ServiceBusConfig(connection_string=""),
        monitor=MonitorConfig(connection_string=""),
    )


def _client(**app_kwargs) -> TestClient:
    return TestClient(create_app(**app_kwargs))


@pytest.fixture
def client():
    with (
        patch("edu_studio.app.load_settings", return_value=_settings()),
        patch("edu_studio.app.configure_logging"),
        _client() as test_client,
    ):
        yield test_client


@pytest.fixture
def blocking_client():
    with (
        patch("edu_studio.app.load_settings", return_value=_settings()),
        patch("edu_studio.app.configure_logging"),
        _client(backend=BlockingBackend()) as test_client,
    ):
        yield test_client


def _create(client: TestClient, headers=GLOBAL_HEADERS, **body) -> dict:
    response = client.post("/items", json={"title": "신입 온보딩 교육", **body}, headers=headers)
    assert response.status_code == 201
    return response.json()


def _attach_pdf(client: TestClient, item_id: str, headers=GLOBAL_HEADERS) -> dict:
    response = client.post(
        f"/items/{item_id}/files",
        json=[{"name": "교육자료.pdf", "size": 2048, "mime": "application/pdf"}],
        headers=headers,
    )
    assert response.status_code == 200
    return response.json()


@pytest.mark.unit
class TestScope:
    def test_missing_scope_is_unauthorized(self, client) -> None:
        response = client.get("/items")
        assert response.status_code == 401

    def test_unknown_creator_type(self, client) -> None:
        response = client.get("/items", headers={"X-Creator-Type": "VIEWER"})
        assert response.status_code == 401

    def test_creator_name_is_decoded(self, client) -> None:
        item = _create(client)
        assert item["created_by_name"] == "김교육"

    def test_dept_creator_lists_only_own_departments(self, client) -> None:
        _create(client)
        own = _create(client, headers=DEPT_HEADERS)

        response = client.get("/items", headers=DEPT_HEADERS)

        assert [i["id"] for i in response.json()["items"]] == [own["id"]]
        assert own["target_dept_ids"] == ["D001"]

    def test_dept_creator_cannot_touch_other_items(self, client) -> None:
        company_wide = _create(client)
        item_url = f"/items/{company_wide['id']}"

        script = client.put(f"{item_url}/script", json={"text": "덮어씀"}, headers=DEPT_HEADERS)
        deleted = client.delete(item_url, headers=DEPT_HEADERS)
        fetched = client.get(item_url, headers=DEPT_HEADERS)
        audit = client.get(f"{item_url}/audit", headers=DEPT_HEADERS)

        assert script.status_code == 422
        assert script.json()["detail"] == MSG_OUT_OF_SCOPE
        assert deleted.status_code == 422
        assert fetched.status_code == 404
        assert audit.status_code == 404
        assert client.get(item_url, headers=GLOBAL_HEADERS).json()["script"] == ""


@pytest.mark.unit
class TestItems:
    def test_create_get_and_list(self, client) -> None:
        item = _create(client)

        fetched = client.get(f"/items/{item['id']}", headers=GLOBAL_HEADERS)
        listed = client.get("/items", params={"q": "온보딩"}, headers=GLOBAL_HEADERS)

        assert fetched.status_code == 200
        assert fetched.json()["status"] == "DRAFT"
        assert [i["id"] for i in listed.json()["items"]] == [item["id"]]

    def test_unknown_item(self, client) -> None:
        response = client.get("/items/item_missing", headers=GLOBAL_HEADERS)
        assert response.status_code == 404

    def test_patch_reports_scope_findings(self, client) -> None:
        item = _create(client, headers=DEPT_HEADERS)

        response = client.patch(
            f"/items/{item['id']}", json={"target_dept_ids": ["D002"]}, headers=DEPT_HEADERS
        )

        body = response.json()
        assert response.status_code == 200
        assert body["issues"]
        assert body["item"]["target_dept_ids"] == ["D001"]

    def test_file_issues_are_returned(self, client) -> None:
        item = _create(client)

        response = client.post(
            f"/items/{item['id']}/files",
            json=[{"name": "clip.mov", "size": 10}],
            headers=GLOBAL_HEADERS,
        )

        assert response.status_code == 200
        assert response.json()["issues"][0].startswith("clip.mov: ")

    def test_review_without_script_is_unprocessable(self, client) -> None:
        item = _create(client)
        _attach_pdf(client, item["id"])

        response = client.post(f"/items/{item['id']}/review", headers=GLOBAL_HEADERS)

        assert response.status_code == 422
        assert response.json()["issues"] == [MSG_SCRIPT_MISSING]

    def test_review_submission(self, client) -> None:
        item = _create(client)
        _attach_pdf(client, item["id"])
        client.put(f"/items/{item['id']}/script", json={"text": "본문"}, headers=GLOBAL_HEADERS)

        response = client.post(f"/items/{item['id']}/review", headers=GLOBAL_HEADERS)
        fetched = client.get(f"/items/{item['id']}", headers=GLOBAL_HEADERS).json()

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert fetched["status"] == "REVIEW_PENDING"
        assert fetched["review_stage"] == "SCRIPT"

    def test_edit_while_in_review_is_rejected(self, client) -> None:
        item = _create(client)
        _attach_pdf(client, item["id"])
        client.put(f"/items/{item['id']}/script", json={"text": "본문"}, headers=GLOBAL_HEADERS)
        client.post(f"/items/{item['id']}/review", headers=GLOBAL_HEADERS)

        response = client.patch(
            f"/items/{item['id']}", json={"title": "변경"}, headers=GLOBAL_HEADERS
        )

        assert response.status_code == 422
        assert response.json()["detail"]

    def test_validation_dry_run(self, client) -> None:
        item = _create(client)

        response = client.get(
            f"/items/{item['id']}/validation", params={"mode": "FINAL"}, headers=GLOBAL_HEADERS
        )

        body = response.json()
        assert body["ok"] is False
        assert len(body["issues"]) >= 2

    def test_rework_requires_rejection(self, client) -> None:
        item = _create(client)
        response = client.post(f"/items/{item['id']}/rework", headers=GLOBAL_HEADERS)
        assert response.status_code == 422

    def test_delete(self, client) -> None:
        item = _create(client)

        deleted = client.delete(f"/items/{item['id']}", headers=GLOBAL_HEADERS)
        missing = client.get(f"/items/{item['id']}", headers=GLOBAL_HEADERS)

        assert deleted.status_code == 204
        assert missing.status_code == 404

    def test_audit_trail(self, client) -> None:
        item = _create(client)
        client.patch(f"/items/{item['id']}", json={"title": "새 제목"}, headers=GLOBAL_HEADERS)

        response = client.get(f"/items/{item['id']}/audit", headers=GLOBAL_HEADERS)

        entries = response.json()["entries"]
        assert [e["action"] for e in entries] == ["insert", "update"]
        assert entries[1]["source"] == "AUTHORING"
        assert "title" in entries[1]["fields"]


@pytest.mark.unit
class TestPipelineRoutes:
    def test_second_job_conflicts(self, blocking_client) -> None:
        first = _create(blocking_client)
        second = _create(blocking_client)
        _attach_pdf(blocking_client, first["id"])
        _attach_pdf(blocking_client, second["id"])

        started = blocking_client.post(
            f"/items/{first['id']}/pipeline", json={"mode": "FULL"}, headers=GLOBAL_HEADERS
        )
        conflict = blocking_client.post(
            f"/items/{second['id']}/pipeline", json={"mode": "FULL"}, headers=GLOBAL_HEADERS
        )

        assert started.status_code == 202
        assert started.json()["pipeline"]["state"] == "RUNNING"
        assert conflict.status_code == 409
        assert conflict.json()["running_item_id"] == first["id"]

    def test_precondition_failure(self, client) -> None:
        item = _create(client)

        response = client.post(
            f"/items/{item['id']}/pipeline", json={"mode": "VIDEO_ONLY"}, headers=GLOBAL_HEADERS
        )

        assert response.status_code == 422
        assert len(response.json()["issues"]) >= 2

    def test_retry_requires_failure(self, client) -> None:
        item = _create(client)
        response = client.post(f"/items/{item['id']}/retry", headers=GLOBAL_HEADERS)
        assert response.status_code == 422

"""
Contract tests for the /translate HTTP surface.

The app runs with fake providers, so translations come from the offline
LLM and no request leaves the process.
"""

import time
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from core.app_factory import create_app
from page_translation.errors import InvalidSegmentError

# Fast pacing so the background queue drains within the test
FAST_SESSION = {"rpm_limit": 6000, "max_paragraph_length": 40}


@pytest.fixture
def client(monkeypatch):
    """Builds a test client running in fake provider mode."""
    monkeypatch.setenv("TEST_MODE", "true")
    monkeypatch.delenv("CORS_ORIGINS", raising=False)
    with TestClient(create_app()) as test_client:
        yield test_client


def _create_session(client: TestClient, **overrides) -> str:
    response = client.post("/translate/sessions", json={**FAST_SESSION, **overrides})
    assert response.status_code == 201
    return response.json()["session_id"]


def _wait_for_status(client: TestClient, session_id: str, predicate, timeout: float = 5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        status = client.get(f"/translate/sessions/{session_id}/status").json()
        if predicate(status):
            return status
        time.sleep(0.02)
    raise AssertionError(f"Session {session_id} did not reach the expected state")


def _assert_error_envelope(response, status_code: int, code: str) -> None:
    assert response.status_code == status_code
    payload = response.json()
    assert payload["error"]["code"] == code
    assert isinstance(payload["error"]["message"], str)
    assert payload["error"]["request_id"]


def test_root_health_check(client) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert "message" in response.json()


def test_create_session_echoes_effective_config(client) -> None:
    response = client.post("/translate/sessions", json={"rpm_limit": 30, "target_language": "ja"})

    assert response.status_code == 201
    payload = response.json()
    assert payload["session_id"]
    assert payload["config"]["rpm_limit"] == 30
    assert payload["config"]["target_language"] == "ja"
    assert payload["config"]["rpd_limit"] == 1000


def test_create_session_without_body_uses_defaults(client) -> None:
    response = client.post("/translate/sessions")

    assert response.status_code == 201
    assert response.json()["config"]["rpm_limit"] == 15


def test_submit_blocks_translates_in_background(client) -> None:
    session_id = _create_session(client)

    response = client.post(
        f"/translate/sessions/{session_id}/blocks",
        json={
            "blocks": [
                {"block_id": "title", "text": "Welcome to the page", "block_type": "h1"},
                {"block_id": "body", "text": "First sentence here. Second sentence here."},
                {"block_id": "noise", "text": "12345"},
            ]
        },
    )
    assert response.status_code == 200
    submitted = response.json()
    assert submitted["accepted"] == 2
    assert submitted["skipped"] == 1
    assert submitted["enqueued_segments"] == 3

    status = _wait_for_status(client, session_id, lambda s: s["processed_count"] == 3)
    assert status["state"] == "idle"
    assert status["succeeded_count"] == 3
    assert status["daily_usage"]["requests"] == 3

    results = client.get(f"/translate/sessions/{session_id}/results").json()
    blocks = {block["block_id"]: block for block in results["blocks"]}
    assert blocks["title"]["translated_text"] == "[TEST_MODE] Welcome to the page"
    assert blocks["body"]["translated_text"] == (
        "[TEST_MODE] First sentence here. [TEST_MODE] Second sentence here."
    )
    assert len(results["segments"]) == 3

    progress = client.get(f"/translate/sessions/{session_id}/progress").json()
    assert progress["percentage"] == 100
    assert progress["is_active"] is False

    stats = client.get(f"/translate/sessions/{session_id}/stats").json()
    assert stats["paragraphs_processed"] == 2


def test_queue_control_endpoints(client) -> None:
    session_id = _create_session(client, rpm_limit=1)
    client.post(
        f"/translate/sessions/{session_id}/blocks",
        json={
            "auto_start": False,
            "blocks": [
                {"block_id": "a", "text": "Paragraph number one."},
                {"block_id": "b", "text": "Paragraph number two."},
            ],
        },
    )

    status = client.get(f"/translate/sessions/{session_id}/status").json()
    assert status["state"] == "idle"
    assert status["queue_length"] == 2

    started = client.post(f"/translate/sessions/{session_id}/start").json()
    assert started["state"] == "draining"

    # At 1 RPM the second item waits a full minute; pause cancels that wait
    _wait_for_status(client, session_id, lambda s: s["processed_count"] == 1)
    paused = client.post(f"/translate/sessions/{session_id}/pause").json()
    assert paused["state"] == "paused"
    assert paused["queue_length"] == 1

    resumed = client.post(f"/translate/sessions/{session_id}/resume").json()
    assert resumed["state"] == "draining"

    cleared = client.post(f"/translate/sessions/{session_id}/clear").json()
    assert cleared["state"] == "idle"
    assert cleared["queue_length"] == 0
    assert cleared["processed_count"] == 0
    assert client.get(f"/translate/sessions/{session_id}/results").json()["blocks"] == []


def test_unknown_session_returns_not_found_envelope(client) -> None:
    for method, path in [
        ("get", "/translate/sessions/missing/status"),
        ("get", "/translate/sessions/missing/events"),
        ("post", "/translate/sessions/missing/start"),
        ("delete", "/translate/sessions/missing"),
    ]:
        response = getattr(client, method)(path)
        _assert_error_envelope(response, 404, "NOT_FOUND")


def test_invalid_block_payload_returns_validation_envelope(client) -> None:
    session_id = _create_session(client)

    response = client.post(
        f"/translate/sessions/{session_id}/blocks",
        json={"blocks": [{"text": "missing block id"}]},
    )

    _assert_error_envelope(response, 422, "VALIDATION_ERROR")
    assert response.json()["error"]["details"]["errors"]


def test_invalid_session_config_rejected(client) -> None:
    response = client.post("/translate/sessions", json={"rpm_limit": 0})
    _assert_error_envelope(response, 422, "VALIDATION_ERROR")


def test_wrong_method_maps_to_bad_request(client) -> None:
    response = client.get("/translate/sessions")
    _assert_error_envelope(response, 405, "BAD_REQUEST")


def test_delete_session(client) -> None:
    session_id = _create_session(client)

    assert client.delete(f"/translate/sessions/{session_id}").status_code == 204
    _assert_error_envelope(
        client.get(f"/translate/sessions/{session_id}/status"), 404, "NOT_FOUND"
    )


def test_request_id_is_propagated(client) -> None:
    response = client.get("/", headers={"X-Request-Id": "req-123"})
    assert response.headers["X-Request-Id"] == "req-123"


def test_validate_key_in_fake_mode(client) -> None:
    response = client.post("/translate/validate-key")
    assert response.status_code == 200
    assert response.json() == {"valid": True}


def test_invalid_segment_maps_to_bad_request(client) -> None:
    session_id = _create_session(client)

    with patch(
        "page_translation.session.PageTranslationSession.submit_blocks",
        side_effect=InvalidSegmentError("Work item text must not be empty"),
    ):
        response = client.post(
            f"/translate/sessions/{session_id}/blocks",
            json={"blocks": [{"block_id": "p", "text": "whatever text"}]},
        )

    _assert_error_envelope(response, 400, "BAD_REQUEST")
    assert response.json()["error"]["message"] == "Work item text must not be empty"

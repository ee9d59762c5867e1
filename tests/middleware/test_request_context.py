from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from course_access.middleware.request_context import install_request_context_filter
from tests.conftest import auth_header, make_actor, seed_course


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    resp = client.get("/health", headers={"X-Request-ID": "my-request-123"})
    assert resp.headers.get("x-request-id") == "my-request-123"


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    resp = client.get("/v1/enrollments")
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None


def test_service_logs_carry_request_and_actor_ids(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    install_request_context_filter(caplog.handler)
    course = seed_course()
    student = make_actor()

    with caplog.at_level(logging.INFO, logger="course_access.services"):
        client.post(
            f"/v1/courses/{course.id}/enroll",
            headers={**auth_header(student), "X-Request-ID": "req-enroll-1"},
        )

    enrolled = [r for r in caplog.records if r.getMessage().startswith("Enrolled ")]
    assert len(enrolled) == 1
    assert enrolled[0].request_id == "req-enroll-1"
    assert enrolled[0].actor_id == str(student.id)

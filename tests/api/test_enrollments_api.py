"""HTTP surface of enrollment: status codes and error bodies."""

from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient

from course_access.models.actor import Role
from course_access.models.payment import PaymentStatus
from course_access.repos.entitlement_store import entitlement_store
from course_access.services.events import ENROLLMENT_CREATED, ENROLLMENT_REMOVED
from tests.conftest import (
    auth_header,
    make_actor,
    mint_token,
    queued_event_types,
    seed_course,
    seed_payment,
)


def test_enroll_free_course_returns_201(client: TestClient) -> None:
    course = seed_course()
    student = make_actor()

    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=auth_header(student))

    assert resp.status_code == 201
    data = resp.json()
    assert data["student_id"] == str(student.id)
    assert data["course_id"] == str(course.id)
    assert data["status"] == "active"
    assert data["progress_percentage"] == 0
    assert data["completed_at"] is None
    assert queued_event_types() == [ENROLLMENT_CREATED]


def test_enroll_twice_returns_409(client: TestClient) -> None:
    course = seed_course()
    headers = auth_header(make_actor())
    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

    assert resp.status_code == 409
    assert resp.json() == {
        "error": "already_enrolled",
        "detail": "You are already enrolled in this course",
    }


def test_enroll_paid_course_without_payment_returns_402(client: TestClient) -> None:
    course = seed_course(price=50)
    resp = client.post(
        f"/v1/courses/{course.id}/enroll", headers=auth_header(make_actor())
    )
    assert resp.status_code == 402
    assert resp.json()["error"] == "payment_required"


def test_enroll_paid_course_with_payment(client: TestClient) -> None:
    course = seed_course(price=50)
    student = make_actor()
    payment = seed_payment(student.id, course)

    resp = client.post(
        f"/v1/courses/{course.id}/enroll",
        json={"payment_id": str(payment.id)},
        headers=auth_header(student),
    )
    assert resp.status_code == 201


def test_enroll_with_pending_payment_returns_402(client: TestClient) -> None:
    course = seed_course(price=50)
    student = make_actor()
    payment = seed_payment(student.id, course, status=PaymentStatus.PENDING)

    resp = client.post(
        f"/v1/courses/{course.id}/enroll",
        json={"payment_id": str(payment.id)},
        headers=auth_header(student),
    )
    assert resp.status_code == 402
    assert resp.json()["error"] == "payment_not_completed"


def test_enroll_with_someone_elses_payment_returns_400(client: TestClient) -> None:
    course = seed_course(price=50)
    payment = seed_payment(uuid4(), course)
    resp = client.post(
        f"/v1/courses/{course.id}/enroll",
        json={"payment_id": str(payment.id)},
        headers=auth_header(make_actor()),
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "payment_mismatch"


def test_enroll_unpublished_course_looks_like_not_found(client: TestClient) -> None:
    course = seed_course(published=False)
    resp = client.post(
        f"/v1/courses/{course.id}/enroll", headers=auth_header(make_actor())
    )
    assert resp.status_code == 404
    assert resp.json() == {"error": "course_not_found", "detail": "Course not found"}


def test_unpublished_and_unknown_courses_get_the_same_body(client: TestClient) -> None:
    headers = auth_header(make_actor())
    hidden = seed_course(published=False)
    unknown = uuid4()

    for method, suffix in (("POST", "enroll"), ("GET", "lessons")):
        unpublished = client.request(
            method, f"/v1/courses/{hidden.id}/{suffix}", headers=headers
        )
        missing = client.request(
            method, f"/v1/courses/{unknown}/{suffix}", headers=headers
        )
        assert unpublished.status_code == missing.status_code == 404
        assert unpublished.json() == missing.json()


def test_enroll_unknown_course_returns_404(client: TestClient) -> None:
    resp = client.post(f"/v1/courses/{uuid4()}/enroll", headers=auth_header(make_actor()))
    assert resp.status_code == 404
    assert resp.json()["error"] == "course_not_found"


def test_enroll_as_instructor_is_forbidden(client: TestClient) -> None:
    course = seed_course()
    resp = client.post(
        f"/v1/courses/{course.id}/enroll",
        headers=auth_header(make_actor(Role.INSTRUCTOR)),
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "permission_denied"


def test_enroll_after_payment(client: TestClient) -> None:
    course = seed_course(price=50)
    student = make_actor()
    payment = seed_payment(student.id, course)
    headers = auth_header(student)

    first = client.post(f"/v1/payments/{payment.id}/enroll", headers=headers)
    second = client.post(f"/v1/payments/{payment.id}/enroll", headers=headers)

    assert first.status_code == 200
    assert second.status_code == 200
    assert first.json() == second.json()


def test_enroll_after_payment_of_another_student(client: TestClient) -> None:
    course = seed_course(price=50)
    payment = seed_payment(uuid4(), course)
    resp = client.post(
        f"/v1/payments/{payment.id}/enroll", headers=auth_header(make_actor())
    )
    assert resp.status_code == 400


def test_list_enrollments(client: TestClient) -> None:
    first = seed_course(title="First")
    second = seed_course(title="Second")
    student = make_actor()
    headers = auth_header(student)
    client.post(f"/v1/courses/{first.id}/enroll", headers=headers)
    client.post(f"/v1/courses/{second.id}/enroll", headers=headers)

    resp = client.get("/v1/enrollments", headers=headers)

    assert resp.status_code == 200
    assert {e["course_id"] for e in resp.json()} == {str(first.id), str(second.id)}


def test_admin_removes_enrollment(client: TestClient) -> None:
    course = seed_course()
    student = make_actor()
    client.post(f"/v1/courses/{course.id}/enroll", headers=auth_header(student))

    resp = client.delete(
        f"/v1/courses/{course.id}/enrollments/{student.id}",
        headers=auth_header(make_actor(Role.ADMIN)),
    )

    assert resp.status_code == 204
    assert asyncio.run(entitlement_store.get_enrollment(student.id, course.id)) is None
    assert queued_event_types()[-1] == ENROLLMENT_REMOVED


def test_student_cannot_remove_enrollment(client: TestClient) -> None:
    course = seed_course()
    student = make_actor()
    headers = auth_header(student)
    client.post(f"/v1/courses/{course.id}/enroll", headers=headers)

    resp = client.delete(
        f"/v1/courses/{course.id}/enrollments/{student.id}", headers=headers
    )
    assert resp.status_code == 403


def test_remove_missing_enrollment_returns_403_not_enrolled(client: TestClient) -> None:
    course = seed_course()
    resp = client.delete(
        f"/v1/courses/{course.id}/enrollments/{uuid4()}",
        headers=auth_header(make_actor(Role.ADMIN)),
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "not_enrolled"


# ---- authentication ----


def test_missing_token_returns_401(client: TestClient) -> None:
    course = seed_course()
    resp = client.post(f"/v1/courses/{course.id}/enroll")
    assert resp.status_code == 401
    assert resp.json()["error"] == "authentication_required"
    assert resp.headers["www-authenticate"] == "Bearer"


def test_garbage_token_returns_401(client: TestClient) -> None:
    resp = client.get(
        "/v1/enrollments", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid token"


def test_token_with_unknown_role_returns_401(client: TestClient) -> None:
    token = mint_token(role="superuser")
    resp = client.get("/v1/enrollments", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_token_with_non_uuid_subject_returns_401(client: TestClient) -> None:
    token = mint_token(sub="alice", role="student")
    resp = client.get("/v1/enrollments", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401

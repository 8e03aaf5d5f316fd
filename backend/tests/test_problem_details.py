from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from taskflow.domain_errors import DomainError, validation_error
from taskflow.problem_details import build_problem_details_response, domain_error_handler, http_exception_handler


def test_problem_details_payload_contains_stable_code_and_rfc7807_fields() -> None:
    response = build_problem_details_response(
        DomainError(
            code="ASSIGNEES_NOT_IN_COMPANY",
            http_status=400,
            message="One or more assignees are not in your company",
            details={"assignedTo": "assignees not in tenant"},
        )
    )

    assert response.status_code == 400
    assert response.media_type == "application/problem+json"

    body = response.body.decode("utf-8")
    assert '"type":"https://api.taskflow.local/problems/assignees_not_in_company"' in body
    assert '"title":"Bad Request"' in body
    assert '"status":400' in body
    assert '"detail":"One or more assignees are not in your company"' in body
    assert '"code":"ASSIGNEES_NOT_IN_COMPANY"' in body
    assert '"details":{"assignedTo":"assignees not in tenant"}' in body


def test_problem_details_omits_details_when_none() -> None:
    response = build_problem_details_response(
        DomainError(code="TASK_NOT_FOUND", http_status=404, message="Task not found")
    )

    body = response.body.decode("utf-8")
    assert response.status_code == 404
    assert '"code":"TASK_NOT_FOUND"' in body
    assert '"details"' not in body
    assert "www-authenticate" not in response.headers


def test_unauthorized_problem_carries_bearer_challenge() -> None:
    response = build_problem_details_response(
        DomainError(code="AUTH_TOKEN_EXPIRED", http_status=401, message="Token expired")
    )

    assert response.headers["www-authenticate"] == "Bearer"


def test_validation_error_helper_maps_to_400() -> None:
    exc = validation_error("Invalid status", {"status": "Done"})

    assert exc.code == "VALIDATION_ERROR"
    assert exc.http_status == 400
    assert str(exc) == "Invalid status"


def test_fastapi_exception_handler_maps_domain_error_to_problem_details() -> None:
    app = FastAPI()
    app.add_exception_handler(DomainError, domain_error_handler)

    @app.get("/boom")
    def _boom():
        raise DomainError(
            code="TASK_UPDATE_FORBIDDEN",
            http_status=403,
            message="Not allowed to update this task",
            details={"source": "test"},
        )

    client = TestClient(app)
    response = client.get("/boom")

    assert response.status_code == 403
    assert response.headers["content-type"].startswith("application/problem+json")
    payload = response.json()
    assert payload["code"] == "TASK_UPDATE_FORBIDDEN"
    assert payload["detail"] == "Not allowed to update this task"


def test_framework_http_errors_are_rendered_as_problem_details() -> None:
    app = FastAPI()
    app.add_exception_handler(HTTPException, http_exception_handler)

    @app.get("/denied")
    def _denied():
        raise HTTPException(status_code=403, detail="Permission denied: canCreateTasks required")

    response = TestClient(app).get("/denied")

    assert response.status_code == 403
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "PERMISSION_DENIED"
    assert response.json()["detail"] == "Permission denied: canCreateTasks required"

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import BaseModel

from veroscale.domain_errors import DomainError, PersistenceError, forbidden
from veroscale.problem_details import (
    build_problem_details_response,
    handle_domain_error,
    handle_validation_error,
)


def test_problem_details_payload_contains_stable_code_and_rfc7807_fields() -> None:
    response = build_problem_details_response(
        DomainError(
            code="MATERIAL_IN_USE",
            http_status=409,
            message="Material has weight records",
            details={"material_id": 3},
        )
    )

    assert response.status_code == 409
    assert response.media_type == "application/problem+json"

    body = response.body.decode("utf-8")
    assert '"type":"https://api.veroscale.local/problems/material_in_use"' in body
    assert '"title":"Conflict"' in body
    assert '"status":409' in body
    assert '"detail":"Material has weight records"' in body
    assert '"code":"MATERIAL_IN_USE"' in body
    assert '"details":{"material_id":3}' in body


def test_problem_details_omits_details_when_none() -> None:
    body = build_problem_details_response(forbidden("RECORD_DELETE_FORBIDDEN", "Admins only")).body.decode("utf-8")

    assert '"status":403' in body
    assert '"details"' not in body


def test_persistence_error_hides_backend_message() -> None:
    response = build_problem_details_response(
        PersistenceError("duplicate key value violates unique constraint", table="users", action="insert")
    )

    body = response.body.decode("utf-8")
    assert response.status_code == 500
    assert '"detail":"Internal server error"' in body
    assert "duplicate key" not in body
    assert '"details"' not in body


def _error_app() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(DomainError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    class _Body(BaseModel):
        weight: float

    @app.get("/boom")
    def _boom():
        raise DomainError(code="ROUTE_PROBLEM", http_status=409, message="route failed")

    @app.post("/weigh")
    def _weigh(body: _Body):
        return {"weight": body.weight}

    return app


def test_route_domain_error_maps_to_problem_details() -> None:
    response = TestClient(_error_app()).get("/boom")

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "ROUTE_PROBLEM"


def test_request_validation_error_is_400_with_field_locations() -> None:
    response = TestClient(_error_app()).post("/weigh", json={"weight": "heavy"})

    assert response.status_code == 400
    payload = response.json()
    assert payload["code"] == "VALIDATION_ERROR"
    assert payload["details"]["errors"][0]["loc"] == ["body", "weight"]

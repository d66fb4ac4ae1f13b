from app.errors import ApiError, ErrorResponse, error_response, success_response


def test_error_response_serializes_details():
    error = ErrorResponse(code="TASK_NOT_FOUND", message="Nope", details={"id": "abc"})

    assert error.to_dict() == {
        "code": "TASK_NOT_FOUND",
        "message": "Nope",
        "details": {"id": "abc"},
    }


def test_api_error_defaults_details_and_status():
    exc = ApiError("INVALID_TYPE", "Bad id")

    assert exc.status_code == 400
    assert exc.error.to_dict() == {
        "code": "INVALID_TYPE",
        "message": "Bad id",
        "details": {},
    }


def test_api_error_carries_server_status():
    exc = ApiError("UPSTREAM_ERROR", "Down", {"status": 503}, status_code=500)

    assert exc.status_code == 500
    assert error_response(exc.error)["ok"] is False


def test_success_response_envelope():
    assert success_response({"tasks": []}) == {"ok": True, "data": {"tasks": []}}

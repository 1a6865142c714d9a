from flask import Flask

from backend.common.errors import (
    CapacityExceededError,
    ConflictError,
    NotFoundError,
    ValidationError,
    register_error_handlers,
)


def build_app(debug=False):
    app = Flask(__name__)
    app.config["DEBUG"] = debug
    register_error_handlers(app)

    @app.route("/not-found")
    def not_found():
        raise NotFoundError("Event not found.")

    @app.route("/conflict")
    def conflict():
        raise ConflictError("This email is already registered for this event.")

    @app.route("/full")
    def full():
        raise CapacityExceededError()

    @app.route("/invalid")
    def invalid():
        raise ValidationError({"name": ["The name field is required."]})

    @app.route("/boom")
    def boom():
        raise RuntimeError("db password is hunter2")

    return app


def test_api_errors_map_to_status_and_message():
    client = build_app().test_client()

    assert client.get("/not-found").status_code == 404
    assert client.get("/not-found").get_json() == {"message": "Event not found."}
    assert client.get("/conflict").status_code == 409

    response = client.get("/full")
    assert response.status_code == 400
    assert response.get_json()["message"] == "Event capacity has been reached. Registration closed."


def test_validation_error_carries_field_errors():
    response = build_app().test_client().get("/invalid")
    assert response.status_code == 422
    assert response.get_json() == {
        "message": "Validation failed",
        "errors": {"name": ["The name field is required."]},
    }


def test_unexpected_error_is_masked():
    response = build_app().test_client().get("/boom")
    assert response.status_code == 500
    assert response.get_json() == {"message": "Something went wrong"}


def test_unexpected_error_detail_in_debug():
    response = build_app(debug=True).test_client().get("/boom")
    assert response.status_code == 500
    assert response.get_json()["error"] == "db password is hunter2"


def test_unknown_route_is_json():
    response = build_app().test_client().get("/nope")
    assert response.status_code == 404
    assert "message" in response.get_json()

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel

import config
import errors
from errors import ApiError, validation_message


class Body(BaseModel):
    title: str
    count: int


def build_app():
    app = FastAPI()
    errors.install(app)

    @app.post("/echo")
    def echo(body: Body):
        return {"success": True, "title": body.title}

    @app.get("/teapot")
    def teapot():
        raise ApiError(418, "I'm a teapot", "short and stout", hint="tip me over")

    @app.get("/boom")
    def boom():
        raise RuntimeError("connection reset by peer")

    return TestClient(app, raise_server_exceptions=False)


def test_api_error_envelope():
    res = build_app().get("/teapot")
    assert res.status_code == 418
    assert res.json() == {"success": False, "message": "I'm a teapot", "error": "short and stout",
                          "hint": "tip me over"}


def test_missing_fields():
    res = build_app().post("/echo", json={})
    assert res.status_code == 400
    assert res.json() == {"success": False, "message": "title, count are required"}


def test_single_missing_field():
    assert build_app().post("/echo", json={"title": "x"}).json()["message"] == "count is required"


def test_wrong_type():
    res = build_app().post("/echo", json={"title": "x", "count": "many"})
    assert res.status_code == 400
    assert res.json()["message"].startswith("count: ")


def test_unexpected_error_exposes_detail():
    res = build_app().get("/boom")
    assert res.status_code == 500
    assert res.json() == {"success": False, "message": "Server error", "error": "connection reset by peer"}


def test_unexpected_error_detail_can_be_hidden(monkeypatch):
    monkeypatch.setattr(config, "EXPOSE_ERROR_DETAILS", False)
    res = build_app().get("/boom")
    assert res.json() == {"success": False, "message": "Server error"}


@pytest.mark.parametrize("errs,message", [
    ([{"type": "json_invalid", "loc": ("body", 1), "msg": "JSON decode error"}], "Invalid JSON body"),
    ([{"type": "model_attributes_type", "loc": ("body",), "msg": "Input should be a valid dictionary"}],
     "Invalid JSON body"),
    ([{"type": "missing", "loc": ("query", "page"), "msg": "Field required"}], "page is required"),
])
def test_validation_message(errs, message):
    assert validation_message(errs) == message


def test_file_lookup(client):
    assert client.get("/api/files/64b7f0c2a1d3e4f5a6b7c8d9").status_code == 404
    assert client.get("/api/files/nope").status_code == 400

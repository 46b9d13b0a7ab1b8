from __future__ import annotations

from flask import Flask
from flask.testing import FlaskClient

import pytest

from pastebin_lite import create_app
from pastebin_lite.domain.errors import IdGenerationError
from pastebin_lite.domain.identifiers import UuidIdGenerator

# 2023-11-14T22:13:20Z
START_MS = 1_700_000_000_000


def _at(ms: int) -> dict[str, str]:
    return {"x-test-now-ms": str(ms)}


def _create(client: FlaskClient, headers: dict[str, str] | None = None, **body) -> str:
    response = client.post("/api/pastes", json=body, headers=headers or {})
    assert response.status_code == 201, response.get_json()
    return response.get_json()["id"]


# ---------------------------------------------------------------------------
# Write endpoint
# ---------------------------------------------------------------------------


def test_create_returns_id_and_share_url(client: FlaskClient) -> None:
    response = client.post("/api/pastes", json={"content": "hello"})

    assert response.status_code == 201
    body = response.get_json()
    assert set(body) == {"id", "url"}
    assert body["url"] == f"https://paste.test/p/{body['id']}"


def test_share_url_falls_back_to_request_host(make_app) -> None:
    app = make_app(BASE_URL=None)
    response = app.test_client().post("/api/pastes", json={"content": "hello"})

    body = response.get_json()
    assert body["url"] == f"http://localhost/p/{body['id']}"


@pytest.mark.parametrize(
    "body",
    [
        {},
        {"content": ""},
        {"content": "   "},
        {"content": 42},
        {"content": "ok", "ttl_seconds": 0},
        {"content": "ok", "ttl_seconds": "10"},
        {"content": "ok", "ttl_seconds": 1.5},
        {"content": "ok", "max_views": -1},
        {"content": "ok", "max_views": True},
        {"content": "ok", "ttl_seconds": 10**12},
        {"content": "ok", "ttl_seconds": 10**20},
        {"content": "ok", "max_views": 2**31},
        {"content": "ok", "max_views": 2**64},
        ["content", "ok"],
    ],
)
def test_create_rejects_invalid_bodies(client: FlaskClient, body) -> None:
    response = client.post("/api/pastes", json=body)

    assert response.status_code == 400
    assert isinstance(response.get_json()["error"], str)


def test_create_rejects_malformed_json(client: FlaskClient) -> None:
    response = client.post(
        "/api/pastes",
        data="{not json",
        content_type="application/json",
    )

    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid JSON"}


def test_null_limits_count_as_absent(client: FlaskClient) -> None:
    paste_id = _create(client, content="open ended", ttl_seconds=None, max_views=None)

    for _ in range(3):
        response = client.get(f"/api/pastes/{paste_id}")
        assert response.status_code == 200
        assert response.get_json() == {
            "content": "open ended",
            "remaining_views": None,
            "expires_at": None,
        }


def test_create_reports_id_generation_failure(client: FlaskClient, monkeypatch) -> None:
    def no_entropy(self) -> str:
        raise IdGenerationError("no entropy")

    monkeypatch.setattr(UuidIdGenerator, "generate", no_entropy)

    response = client.post("/api/pastes", json={"content": "hello"})

    assert response.status_code == 500
    assert response.get_json() == {"error": "Could not allocate a paste id"}


# ---------------------------------------------------------------------------
# Consuming read endpoint
# ---------------------------------------------------------------------------


def test_fetch_counts_down_remaining_views(client: FlaskClient) -> None:
    paste_id = _create(client, content="hello", max_views=2)

    first = client.get(f"/api/pastes/{paste_id}")
    second = client.get(f"/api/pastes/{paste_id}")
    third = client.get(f"/api/pastes/{paste_id}")

    assert first.status_code == 200
    assert first.get_json() == {"content": "hello", "remaining_views": 1, "expires_at": None}
    assert second.get_json()["remaining_views"] == 0
    assert third.status_code == 404
    assert third.get_json() == {"error": "Not found"}


def test_fetch_unlimited_paste(client: FlaskClient) -> None:
    paste_id = _create(client, content="plain")

    for _ in range(3):
        body = client.get(f"/api/pastes/{paste_id}").get_json()
        assert body == {"content": "plain", "remaining_views": None, "expires_at": None}


def test_fetch_respects_test_clock(client: FlaskClient) -> None:
    paste_id = _create(client, headers=_at(START_MS), content="hi", ttl_seconds=10)

    ok = client.get(f"/api/pastes/{paste_id}", headers=_at(START_MS + 5_000))
    gone = client.get(f"/api/pastes/{paste_id}", headers=_at(START_MS + 11_000))

    assert ok.status_code == 200
    assert ok.get_json() == {
        "content": "hi",
        "remaining_views": None,
        "expires_at": "2023-11-14T22:13:30.000Z",
    }
    assert gone.status_code == 404


def test_fetch_at_exact_expiry_is_still_allowed(client: FlaskClient) -> None:
    paste_id = _create(client, headers=_at(START_MS), content="edge", ttl_seconds=10)

    assert client.get(f"/api/pastes/{paste_id}", headers=_at(START_MS + 10_000)).status_code == 200
    assert client.get(f"/api/pastes/{paste_id}", headers=_at(START_MS + 10_001)).status_code == 404


def test_exclusive_boundary_config(make_app) -> None:
    client = make_app(EXPIRY_BOUNDARY="exclusive").test_client()
    paste_id = _create(client, headers=_at(START_MS), content="edge", ttl_seconds=10)

    assert client.get(f"/api/pastes/{paste_id}", headers=_at(START_MS + 9_999)).status_code == 200
    assert client.get(f"/api/pastes/{paste_id}", headers=_at(START_MS + 10_000)).status_code == 404


def test_test_clock_header_ignored_outside_test_mode(make_app) -> None:
    client = make_app(TEST_MODE=False).test_client()
    # Created "in 1970" if the header were honored, so already expired.
    paste_id = _create(client, headers=_at(0), content="real time", ttl_seconds=3600)

    response = client.get(f"/api/pastes/{paste_id}", headers=_at(START_MS * 10))

    assert response.status_code == 200
    assert response.get_json()["content"] == "real time"


def test_malformed_test_clock_header_is_rejected(client: FlaskClient) -> None:
    paste_id = _create(client, content="hello")

    response = client.get(f"/api/pastes/{paste_id}", headers={"x-test-now-ms": "yesterday"})

    assert response.status_code == 400


def test_not_found_is_uniform(client: FlaskClient) -> None:
    expired = _create(client, headers=_at(START_MS), content="a", ttl_seconds=1)
    exhausted = _create(client, content="b", max_views=1)
    client.get(f"/api/pastes/{exhausted}")

    responses = [
        client.get("/api/pastes/3f1c8a52-0000-4000-8000-000000000000", headers=_at(START_MS + 5_000)),
        client.get(f"/api/pastes/{expired}", headers=_at(START_MS + 5_000)),
        client.get(f"/api/pastes/{exhausted}", headers=_at(START_MS + 5_000)),
    ]

    assert {r.status_code for r in responses} == {404}
    assert [r.get_json() for r in responses] == [{"error": "Not found"}] * 3


# ---------------------------------------------------------------------------
# Display page
# ---------------------------------------------------------------------------


def test_display_escapes_content(client: FlaskClient) -> None:
    paste_id = _create(client, content="<script>alert('x')</script>")

    response = client.get(f"/p/{paste_id}")

    assert response.status_code == 200
    assert response.mimetype == "text/html"
    html = response.get_data(as_text=True)
    assert "<script>alert" not in html
    assert "&lt;script&gt;alert(" in html


def test_display_does_not_consume_views(client: FlaskClient) -> None:
    paste_id = _create(client, content="look", max_views=1)

    for _ in range(3):
        assert client.get(f"/p/{paste_id}").status_code == 200

    fetched = client.get(f"/api/pastes/{paste_id}")
    assert fetched.get_json()["remaining_views"] == 0

    assert client.get(f"/p/{paste_id}").status_code == 404
    assert client.get(f"/api/pastes/{paste_id}").status_code == 404


def test_display_hides_expired_paste(client: FlaskClient) -> None:
    paste_id = _create(client, headers=_at(START_MS), content="soon gone", ttl_seconds=10)

    assert client.get(f"/p/{paste_id}", headers=_at(START_MS + 10_000)).status_code == 200
    assert client.get(f"/p/{paste_id}", headers=_at(START_MS + 11_000)).status_code == 404


def test_display_unknown_paste(client: FlaskClient) -> None:
    response = client.get("/p/nope")

    assert response.status_code == 404
    assert "does not exist" in response.get_data(as_text=True)


def test_display_rejects_malformed_test_clock_header(client: FlaskClient) -> None:
    paste_id = _create(client, content="hello")

    response = client.get(f"/p/{paste_id}", headers={"x-test-now-ms": "yesterday"})

    assert response.status_code == 400
    assert response.mimetype == "text/html"


# ---------------------------------------------------------------------------
# Health and observability
# ---------------------------------------------------------------------------


def test_healthz(client: FlaskClient) -> None:
    response = client.get("/api/healthz")

    assert response.status_code == 200
    assert response.get_json() == {"ok": True}


def test_correlation_id_is_echoed(client: FlaskClient) -> None:
    response = client.get("/api/healthz", headers={"X-Correlation-ID": "abc-123"})
    assert response.headers["X-Correlation-ID"] == "abc-123"

    generated = client.get("/api/healthz")
    assert generated.headers["X-Correlation-ID"]


# ---------------------------------------------------------------------------
# Storage failures
# ---------------------------------------------------------------------------


@pytest.fixture
def unreachable_app(tmp_path) -> Flask:
    """App whose SQLite file sits in a directory that does not exist."""
    return create_app(
        "testing",
        config_overrides={
            "SQLALCHEMY_DATABASE_URI": f"sqlite+pysqlite:///{tmp_path / 'missing' / 'api.db'}",
            "BASE_URL": "https://paste.test",
        },
    )


def test_create_on_unreachable_storage_is_500(unreachable_app: Flask) -> None:
    response = unreachable_app.test_client().post("/api/pastes", json={"content": "hello"})

    assert response.status_code == 500
    assert response.get_json() == {"error": "Storage unavailable"}


def test_reads_on_unreachable_storage_are_503(unreachable_app: Flask) -> None:
    client = unreachable_app.test_client()

    fetched = client.get("/api/pastes/any-id")
    assert fetched.status_code == 503
    assert fetched.get_json() == {"error": "Storage unavailable"}

    displayed = client.get("/p/any-id")
    assert displayed.status_code == 503
    assert "Storage unavailable" in displayed.get_data(as_text=True)


def test_healthz_reports_unreachable_database(unreachable_app: Flask) -> None:
    response = unreachable_app.test_client().get("/api/healthz")

    assert response.status_code == 500
    assert response.get_json() == {"ok": False, "error": "Database connection failed"}

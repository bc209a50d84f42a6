from __future__ import annotations

import pytest

from livestatus.security import signature_header
from livestatus.tests.conftest import (
    MOUNT,
    UPDATE_SECRET,
    VERIFY_TOKEN,
    WEBHOOK_SECRET,
    feed_xml,
)

START_MS = 1_700_000_000_000


def _handshake_params(settings, **overrides):
    params = {
        "hub.mode": "subscribe",
        "hub.topic": settings.topic_url,
        "hub.challenge": "c-42",
        "hub.verify_token": VERIFY_TOKEN,
        "hub.lease_seconds": "3600",
    }
    params.update(overrides)
    return {key: value for key, value in params.items() if value is not None}


def _push(client, body: bytes, *, token: str | None = WEBHOOK_SECRET, signature=True):
    headers = {"Content-Type": "application/atom+xml"}
    if token is not None:
        headers["X-Webhook-Token"] = token
    if signature is True:
        headers["X-Hub-Signature-256"] = signature_header(WEBHOOK_SECRET, body)
    elif signature:
        headers["X-Hub-Signature-256"] = signature
    return client.post(f"{MOUNT}/webhook", content=body, headers=headers)


def _control(token: str = UPDATE_SECRET) -> dict[str, str]:
    return {"X-Control-Token": token}


def test_handshake_echoes_challenge(client, settings, clock) -> None:
    response = client.get(f"{MOUNT}/webhook", params=_handshake_params(settings))

    assert response.status_code == 200
    assert response.text == "c-42"
    assert response.headers["content-type"].startswith("text/plain")

    status = client.get(f"{MOUNT}/status")
    assert status.headers["x-pshb-expires"] == str(START_MS + 3600 * 1000)


@pytest.mark.parametrize(
    "overrides",
    [
        {"hub.mode": "unsubscribe"},
        {"hub.topic": "https://example.com/feed"},
        {"hub.verify_token": "wrong"},
        {"hub.challenge": None},
        {"hub.mode": None},
    ],
)
def test_handshake_rejections(client, settings, overrides) -> None:
    response = client.get(f"{MOUNT}/webhook", params=_handshake_params(settings, **overrides))

    assert response.status_code == 400
    assert response.text == "Invalid subscription request"
    assert "x-pshb-expires" not in client.get(f"{MOUNT}/status").headers


def test_push_for_non_livestream_changes_nothing(client, youtube) -> None:
    youtube.set_upload("upload")

    response = _push(client, feed_xml("upload"))

    assert response.status_code == 204
    assert client.get(f"{MOUNT}/status").json() == {"live": False, "videoId": None}


def test_push_for_livestream_broadcasts(client, youtube) -> None:
    youtube.set_live("abc")

    with client:
        with client.websocket_connect(f"{MOUNT}/") as websocket:
            assert websocket.receive_json() == {"live": False, "videoId": None}

            response = _push(client, feed_xml("abc"))

            assert response.status_code == 204
            assert websocket.receive_json() == {"live": True, "videoId": "abc"}

    assert client.get(f"{MOUNT}/status").json() == {"live": True, "videoId": "abc"}


def test_push_with_unparseable_body_is_acknowledged(client, youtube) -> None:
    response = _push(client, b"garbage")

    assert response.status_code == 204
    assert youtube.calls == []


def test_push_acknowledged_when_youtube_fails(client, youtube) -> None:
    youtube.status_code = 503

    assert _push(client, feed_xml("abc")).status_code == 204
    assert client.get(f"{MOUNT}/status").json()["live"] is False


@pytest.mark.parametrize(
    "token, signature",
    [
        (None, True),
        ("wrong", True),
        (WEBHOOK_SECRET, "sha256=" + "0" * 64),
    ],
)
def test_push_unauthorized(client, youtube, token, signature) -> None:
    youtube.set_live("abc")

    response = _push(client, feed_xml("abc"), token=token, signature=signature)

    assert response.status_code == 401
    assert response.text == "Unauthorized"
    assert youtube.calls == []
    assert client.get(f"{MOUNT}/status").json() == {"live": False, "videoId": None}


def test_update_sets_and_clears(client) -> None:
    response = client.post(f"{MOUNT}/update", json={"videoId": "manual"}, headers=_control())
    assert response.status_code == 204
    assert client.get(f"{MOUNT}/status").json() == {"live": True, "videoId": "manual"}

    for _ in range(2):
        response = client.post(f"{MOUNT}/update", json={"videoId": None}, headers=_control())
        assert response.status_code == 204
        assert client.get(f"{MOUNT}/status").json() == {"live": False, "videoId": None}


@pytest.mark.parametrize("headers", [{}, {"X-Control-Token": "nope"}])
def test_update_requires_control_token(client, headers) -> None:
    response = client.post(f"{MOUNT}/update", json={"videoId": "x"}, headers=headers)

    assert response.status_code == 403
    assert client.get(f"{MOUNT}/status").json()["live"] is False


@pytest.mark.parametrize(
    "body",
    [b"not json", b"[]", b"{}", b'{"videoId": 5}'],
)
def test_update_rejects_malformed_bodies(client, body) -> None:
    response = client.post(
        f"{MOUNT}/update",
        content=body,
        headers={**_control(), "Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert "error" in response.json()


def test_status_headers(client) -> None:
    response = client.get(f"{MOUNT}/status")

    assert response.status_code == 200
    assert response.json() == {"live": False, "videoId": None}
    assert response.headers["cache-control"] == "public, max-age=120"
    assert "x-pshb-expires" not in response.headers


def test_flush_found(client, youtube, clock) -> None:
    youtube.live_search = "live1"

    response = client.post(f"{MOUNT}/flush")

    assert response.status_code == 200
    assert response.json() == {"live": True, "videoId": "live1"}
    assert client.get(f"{MOUNT}/status").json() == {"live": True, "videoId": "live1"}


def test_flush_not_found(client, youtube, clock) -> None:
    response = client.post(f"{MOUNT}/flush")

    assert response.status_code == 404
    assert response.json() == {"live": False, "videoId": None}


def test_flush_rate_limited(client, youtube, clock) -> None:
    youtube.live_search = "live1"
    assert client.post(f"{MOUNT}/flush").status_code == 200
    youtube.live_search = None
    clock.advance(60)

    response = client.post(f"{MOUNT}/flush")

    assert response.status_code == 429
    body = response.json()
    assert body["error"] == "Stop hitting the API."
    assert body["statusText"] == "Cooldown is active."
    assert body["retry_after"] == 1740
    assert response.headers["retry-after"] == "1740"
    assert client.get(f"{MOUNT}/status").json() == {"live": True, "videoId": "live1"}


def test_flush_upstream_error(client, youtube, clock) -> None:
    youtube.status_code = 403

    response = client.post(f"{MOUNT}/flush")

    assert response.status_code == 502
    assert response.json() == {"error": "YouTube Data API error", "status": 403}


def test_reconcile_requires_control_token(client) -> None:
    assert client.post(f"{MOUNT}/reconcile").status_code == 403


def test_reconcile_clears_ended_stream(client, youtube, settings, clock) -> None:
    client.get(f"{MOUNT}/webhook", params=_handshake_params(settings, **{"hub.lease_seconds": None}))
    client.post(f"{MOUNT}/update", json={"videoId": "done"}, headers=_control())
    youtube.set_ended("done")

    response = client.post(f"{MOUNT}/reconcile", headers=_control())

    assert response.status_code == 202
    assert response.json() == {"checked": True, "cleared": True, "renewal": False}
    assert client.get(f"{MOUNT}/status").json() == {"live": False, "videoId": None}


def test_reconcile_reports_renewal(client, clock) -> None:
    response = client.post(f"{MOUNT}/reconcile", headers=_control())

    assert response.status_code == 202
    assert response.json()["renewal"] is True


@pytest.mark.parametrize("path", ["/", "/ws"])
def test_websocket_initial_snapshot(client, path) -> None:
    with client.websocket_connect(f"{MOUNT}{path}") as websocket:
        assert websocket.receive_json() == {"live": False, "videoId": None}


@pytest.mark.parametrize("path", ["/", "/ws"])
def test_plain_get_on_websocket_path(client, path) -> None:
    response = client.get(f"{MOUNT}{path}")

    assert response.status_code == 426
    assert response.headers["upgrade"] == "websocket"
    assert "error" in response.json()


@pytest.mark.parametrize("path", ["/nope", f"{MOUNT}/nope"])
def test_unknown_path(client, path) -> None:
    response = client.get(path)

    assert response.status_code == 404
    assert response.json() == {"error": "Not found"}


def test_cors_allows_any_origin(client) -> None:
    response = client.get(f"{MOUNT}/status", headers={"Origin": "https://example.org"})

    assert response.headers["access-control-allow-origin"] == "*"


def test_health_and_metrics(client) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    assert health.json()["status"] == "ok"

    client.get(f"{MOUNT}/status")
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "requests_total" in metrics.text


def test_bare_mount_path_is_websocket_endpoint(client) -> None:
    response = client.get(MOUNT, follow_redirects=False)

    assert response.status_code == 426
    assert response.headers["upgrade"] == "websocket"

    with client.websocket_connect(MOUNT) as websocket:
        assert websocket.receive_json() == {"live": False, "videoId": None}


def test_reconcile_clear_reaches_listeners(client, youtube, settings, clock) -> None:
    client.get(f"{MOUNT}/webhook", params=_handshake_params(settings, **{"hub.lease_seconds": None}))
    client.post(f"{MOUNT}/update", json={"videoId": "done"}, headers=_control())
    youtube.set_ended("done")

    with client:
        with client.websocket_connect(f"{MOUNT}/ws") as websocket:
            assert websocket.receive_json() == {"live": True, "videoId": "done"}

            response = client.post(f"{MOUNT}/reconcile", headers=_control())

            assert response.json()["cleared"] is True
            assert websocket.receive_json() == {"live": False, "videoId": None}

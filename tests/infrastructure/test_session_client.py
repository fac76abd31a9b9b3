from __future__ import annotations

import json
import threading
import time
from typing import Any, Dict, List

import pytest
import requests

from steerflux.application.navigation import Navigator, RedirectFallback
from steerflux.domain.credentials import CredentialPair
from steerflux.domain.errors import AuthExpiredError, NetworkError, RefreshFailedError, RequestTimeoutError
from steerflux.infrastructure.credential_store import InMemoryCredentialStore, JsonFileCredentialStore
from steerflux.infrastructure.session_client import SessionClient
from tests.http_stubs import make_response, refresh_ok

BASE_URL = "http://api.test/api"


def _client(store, navigator: Navigator | None = None, **kwargs: Any) -> SessionClient:
    fallback = RedirectFallback(navigator, login_path="/admin/login") if navigator else None
    return SessionClient(
        base_url=BASE_URL,
        timeout=10.0,
        credential_store=store,
        on_session_expired=fallback,
        refresh_path="/auth/refresh",
        **kwargs,
    )


def test_request_without_token_omits_authorization_header(transport) -> None:
    transport.queue(make_response(200, {"success": True, "data": []}))
    client = _client(InMemoryCredentialStore())

    response = client.request("GET", "/products")

    assert response.status_code == 200
    assert len(transport.calls) == 1
    assert "Authorization" not in transport.calls[0]["headers"]
    assert transport.calls[0]["url"] == f"{BASE_URL}/products"
    assert transport.calls[0]["timeout"] == 10.0


def test_request_attaches_bearer_token(transport, store) -> None:
    transport.queue(make_response(200, {"success": True}))

    _client(store).request("POST", "/messages", {"name": "Ana"})

    call = transport.calls[0]
    assert call["headers"]["Authorization"] == "Bearer A1"
    assert call["method"] == "POST"
    assert call["json"] == {"name": "Ana"}


@pytest.mark.parametrize("status", [200, 400, 403, 404, 500])
def test_non_401_responses_are_returned_unmodified(transport, store, status: int) -> None:
    original = make_response(status, {"success": status < 400, "error": "nope"})
    transport.queue(original)

    response = _client(store).get("/products")

    assert response is original
    assert transport.refresh_calls == []
    assert store.get() == CredentialPair("A1", "R1")


def test_401_refreshes_once_and_returns_replay_result(transport, store) -> None:
    replay = make_response(200, {"success": True, "data": [{"_id": "p1"}]})
    transport.queue(make_response(401), replay).queue_refresh(refresh_ok("A2", "R2"))

    response = _client(store).request("GET", "/products", None)

    assert response is replay
    assert len(transport.refresh_calls) == 1
    assert len(transport.calls) == 2
    assert transport.refresh_calls[0]["url"] == f"{BASE_URL}/auth/refresh"
    assert transport.refresh_calls[0]["json"] == {"refreshToken": "R1"}
    assert "Authorization" not in transport.refresh_calls[0]["headers"]
    assert store.get() == CredentialPair("A2", "R2")
    assert transport.auth_headers() == ["Bearer A1", "Bearer A2"]
    assert transport.calls[1]["url"] == f"{BASE_URL}/products"


def test_replay_keeps_original_request_shape(transport, store) -> None:
    transport.queue(make_response(401), make_response(201, {"success": True})).queue_refresh(refresh_ok())

    _client(store).patch("/messages/bulk", {"ids": ["m1"], "action": "read"}, params={"x": 1})

    first, second = transport.calls
    for key in ("method", "url", "json", "params"):
        assert first[key] == second[key]


def test_refresh_failure_clears_credentials_redirects_and_surfaces_original_401(transport, store) -> None:
    original = make_response(401, {"success": False, "message": "jwt expired"})
    transport.queue(original).queue_refresh(make_response(401, {"success": False}))
    store.set_admin_profile({"email": "admin@steerflux.com"})
    navigator = Navigator("/admin/products")

    with pytest.raises(AuthExpiredError) as excinfo:
        _client(store, navigator).get("/products")

    assert excinfo.value.response is original
    assert excinfo.value.status_code == 401
    assert excinfo.value.message == "jwt expired"
    assert store.get() is None
    assert store.access_token() is None
    assert store.admin_profile() is None
    assert navigator.history == ["/admin/login"]
    assert len(transport.calls) == 1


def test_refresh_failure_on_login_page_does_not_navigate(transport, store) -> None:
    transport.queue(make_response(401)).queue_refresh(make_response(500))
    navigator = Navigator("/admin/login")

    with pytest.raises(AuthExpiredError):
        _client(store, navigator).get("/auth/profile")

    assert store.get() is None
    assert navigator.history == []
    assert navigator.current_path == "/admin/login"


def test_login_page_prefix_also_blocks_redirect(transport, store) -> None:
    transport.queue(make_response(401)).queue_refresh(make_response(401))
    navigator = Navigator("/admin/login?next=/admin/reviews")

    with pytest.raises(AuthExpiredError):
        _client(store, navigator).get("/reviews/admin/all")

    assert navigator.history == []


def test_replayed_401_is_terminal(transport, store) -> None:
    replayed = make_response(401, {"message": "still no"})
    transport.queue(make_response(401), replayed).queue_refresh(refresh_ok("A2", "R2"))
    navigator = Navigator("/admin/dashboard")

    with pytest.raises(AuthExpiredError) as excinfo:
        _client(store, navigator).get("/dashboard/stats")

    assert excinfo.value.response is replayed
    assert len(transport.refresh_calls) == 1
    assert len(transport.calls) == 2
    # The refresh itself worked, so the session is kept.
    assert store.get() == CredentialPair("A2", "R2")
    assert navigator.history == []


def test_missing_refresh_token_fails_without_network_call(transport, tmp_path) -> None:
    token_file = tmp_path / "credentials.json"
    token_file.write_text(json.dumps({"accessToken": "A1"}), encoding="utf-8")
    store = JsonFileCredentialStore(token_file)
    transport.queue(make_response(401))
    navigator = Navigator("/admin/messages")

    with pytest.raises(AuthExpiredError):
        _client(store, navigator).get("/messages")

    assert transport.refresh_calls == []
    assert store.access_token() is None
    assert navigator.history == ["/admin/login"]


@pytest.mark.parametrize(
    "refresh_reply",
    [
        make_response(200, {"success": True, "data": {"accessToken": "A2"}}),
        make_response(200, {"success": True}),
        make_response(200, ["not", "an", "envelope"]),
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.ReadTimeout("slow"),
    ],
)
def test_unusable_refresh_outcomes_count_as_failure(transport, store, refresh_reply) -> None:
    transport.queue(make_response(401)).queue_refresh(refresh_reply)

    with pytest.raises(AuthExpiredError):
        _client(store, Navigator("/")).get("/categories")

    assert store.get() is None
    assert len(transport.refresh_calls) == 1


def test_invalid_json_refresh_body_counts_as_failure(transport, store) -> None:
    broken = make_response(200)
    broken._content = b"<html>gateway</html>"
    transport.queue(make_response(401)).queue_refresh(broken)

    with pytest.raises(AuthExpiredError):
        _client(store).get("/categories")

    assert store.get() is None


def test_network_error_propagates_without_refresh(transport, store) -> None:
    transport.queue(requests.exceptions.ConnectionError("connection refused"))

    with pytest.raises(NetworkError):
        _client(store).get("/products")

    assert transport.refresh_calls == []
    assert store.get() == CredentialPair("A1", "R1")


def test_timeout_is_distinct_from_network_error(transport, store) -> None:
    transport.queue(requests.exceptions.ReadTimeout("read timed out"))

    with pytest.raises(RequestTimeoutError) as excinfo:
        _client(store).get("/products")

    assert not isinstance(excinfo.value, NetworkError)
    assert isinstance(excinfo.value, TimeoutError)
    assert transport.refresh_calls == []


def test_network_error_on_replay_propagates(transport, store) -> None:
    transport.queue(make_response(401), requests.exceptions.ConnectionError("gone")).queue_refresh(refresh_ok())

    with pytest.raises(NetworkError):
        _client(store).get("/products")

    assert store.get() == CredentialPair("A2", "R2")


def test_repeated_identical_requests_are_independent(transport, store) -> None:
    transport.queue(make_response(200, {"n": 1}), make_response(200, {"n": 2}))
    client = _client(store)

    first = client.request("GET", "/products", None)
    second = client.request("GET", "/products", None)

    assert first.json() == {"n": 1}
    assert second.json() == {"n": 2}
    assert len(transport.calls) == 2
    assert store.get() == CredentialPair("A1", "R1")


def test_malformed_body_is_passed_through(transport, store) -> None:
    odd = make_response(200)
    odd._content = b"not json at all"
    transport.queue(odd)

    assert _client(store).get("/products") is odd


def test_session_expired_callback_error_does_not_mask_original_401(transport, store) -> None:
    original = make_response(401)
    transport.queue(original).queue_refresh(make_response(401))

    def broken_callback() -> None:
        raise RuntimeError("router unavailable")

    client = SessionClient(base_url=BASE_URL, credential_store=store, on_session_expired=broken_callback)

    with pytest.raises(AuthExpiredError) as excinfo:
        client.get("/products")

    assert excinfo.value.response is original
    assert store.get() is None


def test_absolute_urls_are_not_prefixed(transport, store) -> None:
    transport.queue(make_response(200))

    _client(store).get("https://cdn.test/uploads/x.json")

    assert transport.calls[0]["url"] == "https://cdn.test/uploads/x.json"


def test_concurrent_401s_share_a_single_refresh(transport, store) -> None:
    barrier = threading.Barrier(2, timeout=5)

    def reply(call: Dict[str, Any]):
        if call["headers"].get("Authorization") == "Bearer A1":
            # Hold both callers until each has been rejected with the old token.
            barrier.wait()
            return make_response(401)
        return make_response(200, {"path": call["url"]})

    transport.default_reply = reply
    transport.queue_refresh(refresh_ok("A2", "R2"))
    client = _client(store, Navigator("/admin"))

    results: List[Any] = []
    errors: List[BaseException] = []

    def worker(path: str) -> None:
        try:
            results.append(client.get(path).status_code)
        except BaseException as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(p,)) for p in ("/products", "/categories")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert errors == []
    assert results == [200, 200]
    assert len(transport.refresh_calls) == 1
    assert store.get() == CredentialPair("A2", "R2")
    assert sorted(transport.auth_headers()) == ["Bearer A1", "Bearer A1", "Bearer A2", "Bearer A2"]


def test_waiter_after_failed_refresh_skips_network(transport, store) -> None:
    client = _client(store)
    transport.queue(make_response(401)).queue_refresh(make_response(401))
    with pytest.raises(AuthExpiredError):
        client.get("/products")

    # A request that was in flight with the old token arrives after the clear.
    with pytest.raises(RefreshFailedError):
        client._refresh(stale_token="A1")
    assert len(transport.refresh_calls) == 1


class _SlowClearStore(InMemoryCredentialStore):
    """In-memory store whose ``clear`` takes as long as a file rewrite."""

    def clear(self) -> None:
        time.sleep(0.2)
        super().clear()


def test_concurrent_401s_after_rejected_refresh_make_one_refresh_call(transport) -> None:
    store = _SlowClearStore(CredentialPair("A1", "R1"))
    barrier = threading.Barrier(2, timeout=5)

    def reply(call: Dict[str, Any]):
        barrier.wait()
        return make_response(401)

    transport.default_reply = reply
    transport.queue_refresh(make_response(401, {"success": False}))
    navigator = Navigator("/admin/messages")
    client = _client(store, navigator)

    errors: List[BaseException] = []

    def worker(path: str) -> None:
        try:
            client.get(path)
        except BaseException as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(p,)) for p in ("/messages", "/messages/stats")]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)

    assert len(errors) == 2
    assert all(isinstance(exc, AuthExpiredError) for exc in errors)
    assert transport.refresh_calls == [
        {
            "method": "POST",
            "url": f"{BASE_URL}/auth/refresh",
            "json": {"refreshToken": "R1"},
            "headers": {"Accept": "application/json"},
            "timeout": 10.0,
        }
    ]
    assert store.get() is None
    assert navigator.current_path == "/admin/login"

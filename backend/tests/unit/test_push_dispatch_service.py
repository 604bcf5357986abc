from __future__ import annotations

import json
import threading
import time

import httpx
import jwt
import pytest

from app.core.exceptions import SubscriptionStoreError, VapidSigningError
from app.schemas.push import NotifyRequest
from app.services.push_dispatch_service import (
    DEFAULT_ICON,
    DEFAULT_TAG,
    DEFAULT_VIBRATE,
    DeliveryStatus,
    PushDispatchService,
)
from app.services.push_subscription_store import (
    InMemorySubscriptionStore,
    SqlSubscriptionStore,
)

SUBJECT = "mailto:ops@example.com"


def _service(store, server_keys, handler, **kwargs) -> PushDispatchService:
    return PushDispatchService(
        store,
        server_keys,
        subject=kwargs.pop("subject", SUBJECT),
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _request(**overrides) -> NotifyRequest:
    return NotifyRequest(title="Morning routine", body="Time to stretch", **overrides)


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(201)


def test_no_subscriptions_returns_zero_counts(server_keys):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(201)

    result = _service(InMemorySubscriptionStore(), server_keys, handler).dispatch(
        "user-1", _request()
    )

    assert (result.successful, result.failed, result.total) == (0, 0, 0)
    assert calls == []


def test_one_failure_does_not_affect_siblings(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://a.push.example.com/sub")
    store.add("user-1", "https://b.push.example.com/sub")

    def handler(request):
        if request.url.host == "a.push.example.com":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(201)

    result = _service(store, server_keys, handler).dispatch("user-1", _request())

    assert (result.successful, result.failed, result.total) == (1, 1, 2)
    statuses = {outcome.endpoint: outcome.status for outcome in result.outcomes}
    assert statuses["https://a.push.example.com/sub"] is DeliveryStatus.FAILED
    assert statuses["https://b.push.example.com/sub"] is DeliveryStatus.DELIVERED


def test_timeout_counts_as_failed(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/slow")

    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = _service(store, server_keys, handler, timeout=0.5).dispatch("user-1", _request())

    assert (result.successful, result.failed, result.total) == (0, 1, 1)
    assert "ReadTimeout" in result.outcomes[0].reason
    assert len(store.list_for_user("user-1")) == 1


def test_gone_subscription_is_removed(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/gone")

    def handler(request):
        return httpx.Response(410)

    service = _service(store, server_keys, handler)
    result = service.dispatch("user-1", _request())

    assert (result.successful, result.failed, result.total) == (0, 1, 1)
    assert result.outcomes[0].status is DeliveryStatus.EXPIRED
    assert store.list_for_user("user-1") == []

    again = service.dispatch("user-1", _request())
    assert again.total == 0


def test_non_gone_error_keeps_subscription(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/busy")

    def handler(request):
        return httpx.Response(429, text="slow down")

    result = _service(store, server_keys, handler).dispatch("user-1", _request())

    assert result.failed == 1
    assert result.outcomes[0].status_code == 429
    assert len(store.list_for_user("user-1")) == 1


def test_end_to_end_against_sql_store(server_keys, db, session_factory):
    from app.repositories.push_subscription_repository import PushSubscriptionRepository

    repo = PushSubscriptionRepository(db)
    repo.create_subscription("u1", "https://e1.example.com/s1", "k1", "a1")
    gone = repo.create_subscription("u1", "https://e2.example.com/s2", "k2", "a2")
    db.commit()

    def handler(request):
        return httpx.Response(201 if request.url.host == "e1.example.com" else 410)

    store = SqlSubscriptionStore(session_factory)
    service = _service(store, server_keys, handler)

    result = service.dispatch("u1", _request())

    assert (result.successful, result.failed, result.total) == (1, 1, 2)
    remaining = store.list_for_user("u1")
    assert [record.endpoint for record in remaining] == ["https://e1.example.com/s1"]
    assert gone.id not in {record.id for record in remaining}

    again = service.dispatch("u1", _request())
    assert (again.successful, again.failed, again.total) == (1, 0, 1)


def test_request_headers_and_per_origin_audience(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://fcm.googleapis.com/fcm/send/abc")
    store.add("user-1", "https://updates.push.services.mozilla.com/wpush/v2/xyz?q=1")
    seen = {}
    lock = threading.Lock()

    def handler(request):
        with lock:
            seen[request.url.host] = request.headers
        return httpx.Response(201)

    _service(store, server_keys, handler, ttl_seconds=86400).dispatch("user-1", _request())

    assert set(seen) == {"fcm.googleapis.com", "updates.push.services.mozilla.com"}
    for host, headers in seen.items():
        assert headers["TTL"] == "86400"
        assert headers["Content-Type"] == "application/json"
        scheme, _, params = headers["Authorization"].partition(" ")
        assert scheme == "vapid"
        token_part, key_part = params.split(", ")
        assert key_part == f"k={server_keys.public_key_b64}"
        token = token_part.removeprefix("t=")
        claims = jwt.decode(
            token,
            server_keys.public_key,
            algorithms=["ES256"],
            audience=f"https://{host}",
        )
        assert claims["sub"] == SUBJECT


def test_payload_defaults(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/a")
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(201)

    _service(store, server_keys, handler).dispatch("user-1", _request())

    assert bodies == [
        {
            "title": "Morning routine",
            "body": "Time to stretch",
            "icon": DEFAULT_ICON,
            "tag": DEFAULT_TAG,
            "requireInteraction": True,
            "vibrate": list(DEFAULT_VIBRATE),
            "data": {},
        }
    ]


def test_payload_overrides(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/a")
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return httpx.Response(201)

    request = NotifyRequest.model_validate(
        {
            "title": "Hydrate",
            "body": "",
            "tag": "water",
            "icon": "/water.png",
            "vibrate": [100, 50],
            "requireInteraction": False,
            "data": {"routineId": 42},
        }
    )
    _service(store, server_keys, handler).dispatch("user-1", request)

    payload = bodies[0]
    assert payload["tag"] == "water"
    assert payload["icon"] == "/water.png"
    assert payload["vibrate"] == [100, 50]
    assert payload["requireInteraction"] is False
    assert payload["data"] == {"routineId": 42}


def test_delete_failure_is_logged_and_ignored(server_keys, caplog):
    class BrokenDeleteStore(InMemorySubscriptionStore):
        def delete(self, subscription_id: str) -> bool:
            raise RuntimeError("database is locked")

    store = BrokenDeleteStore()
    store.add("user-1", "https://push.example.com/gone")

    result = _service(store, server_keys, lambda request: httpx.Response(410)).dispatch(
        "user-1", _request()
    )

    assert (result.successful, result.failed, result.total) == (0, 1, 1)
    assert "Failed to delete expired push subscription" in caplog.text


def test_unexpected_error_in_attempt_is_settled_as_failed(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://a.push.example.com/sub")
    store.add("user-1", "https://b.push.example.com/sub")

    def handler(request):
        if request.url.host == "a.push.example.com":
            raise RuntimeError("boom")
        return httpx.Response(201)

    result = _service(store, server_keys, handler).dispatch("user-1", _request())

    assert (result.successful, result.failed, result.total) == (1, 1, 2)


def test_endpoint_without_origin_fails_only_itself(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "not-a-url")
    store.add("user-1", "https://push.example.com/ok")

    result = _service(store, server_keys, _ok).dispatch("user-1", _request())

    assert (result.successful, result.failed, result.total) == (1, 1, 2)


def test_unparseable_endpoint_fails_only_itself(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://[bad/sub")
    store.add("user-1", "https://push.example.com/ok")
    sent = []

    def handler(request):
        sent.append(str(request.url))
        return httpx.Response(201)

    result = _service(store, server_keys, handler).dispatch("user-1", _request())

    assert (result.successful, result.failed, result.total) == (1, 1, 2)
    assert sent == ["https://push.example.com/ok"]
    failed = [o for o in result.outcomes if o.status is DeliveryStatus.FAILED]
    assert [o.endpoint for o in failed] == ["https://[bad/sub"]


def test_request_timeout_applies_per_phase(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/a")
    seen = []

    def handler(request):
        seen.append(request.extensions["timeout"])
        return httpx.Response(201)

    _service(store, server_keys, handler, timeout=2.5).dispatch("user-1", _request())

    assert seen == [{"connect": 2.5, "read": 2.5, "write": 2.5, "pool": 2.5}]


def test_signing_failure_aborts_call(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/a")
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(201)

    with pytest.raises(VapidSigningError):
        _service(store, server_keys, handler, subject="").dispatch("user-1", _request())
    assert calls == []


def test_store_read_failure_propagates(server_keys):
    class BrokenStore(InMemorySubscriptionStore):
        def list_for_user(self, user_id: str):
            raise SubscriptionStoreError()

    with pytest.raises(SubscriptionStoreError):
        _service(BrokenStore(), server_keys, _ok).dispatch("user-1", _request())


def test_fan_out_respects_concurrency_cap(server_keys):
    store = InMemorySubscriptionStore()
    for n in range(6):
        store.add("user-1", f"https://push.example.com/{n}")

    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def handler(request):
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.05)
        with lock:
            state["active"] -= 1
        return httpx.Response(201)

    result = _service(store, server_keys, handler, max_concurrency=2).dispatch(
        "user-1", _request()
    )

    assert result.successful == 6
    assert state["peak"] <= 2
    assert state["active"] == 0


def test_subscriptions_of_other_users_are_not_contacted(server_keys):
    store = InMemorySubscriptionStore()
    store.add("user-1", "https://push.example.com/mine")
    store.add("user-2", "https://push.example.com/theirs")
    urls = []

    def handler(request):
        urls.append(str(request.url))
        return httpx.Response(201)

    result = _service(store, server_keys, handler).dispatch("user-1", _request())

    assert result.total == 1
    assert urls == ["https://push.example.com/mine"]

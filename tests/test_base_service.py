import pytest
import requests

from client.api import base_service
from client.api.base_service import APIError, BaseService
from client.api.chat_service import ChatService
from client.session.state import SessionState


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = "" if payload is None else str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


@pytest.fixture
def saved_auth(monkeypatch):
    saved = []
    monkeypatch.setattr(base_service.config, "save_auth", saved.append)
    return saved


@pytest.fixture
def state():
    return SessionState(access_token="old-token", refresh_token="refresh-1", user_id="u1", email="x@example.com")


def install(monkeypatch, responses):
    calls = []

    def fake_request(method, url, headers=None, params=None, json=None, timeout=None):
        calls.append({"method": method, "url": url, "headers": headers, "params": params, "json": json})
        return responses.pop(0)

    monkeypatch.setattr(requests, "request", fake_request)
    return calls


async def test_refreshes_once_on_401(monkeypatch, state, saved_auth):
    calls = install(monkeypatch, [
        FakeResponse(401, {"detail": "Invalid or expired token"}),
        FakeResponse(200, {"access_token": "new-token", "refresh_token": "refresh-2", "user_id": "u1"}),
        FakeResponse(200, [{"chatId": "c1"}]),
    ])
    service = ChatService(api_url="http://test/api", state=state)

    chats = await service.get_chats()

    assert chats == [{"chatId": "c1"}]
    assert [c["url"] for c in calls] == [
        "http://test/api/chats/me",
        "http://test/api/auth/refresh",
        "http://test/api/chats/me",
    ]
    assert calls[1]["json"] == {"refresh_token": "refresh-1"}
    assert calls[2]["headers"]["Authorization"] == "Bearer new-token"
    assert state.refresh_token == "refresh-2"
    assert saved_auth[0]["access_token"] == "new-token"
    assert "timestamp" in saved_auth[0]


async def test_failed_refresh_is_session_expired(monkeypatch, state, saved_auth):
    calls = install(monkeypatch, [
        FakeResponse(401, {"detail": "Invalid or expired token"}),
        FakeResponse(401, {"detail": "Token refresh failed"}),
    ])
    service = ChatService(api_url="http://test/api", state=state)

    with pytest.raises(APIError) as excinfo:
        await service.send_message("y@example.com", "hello")

    assert excinfo.value.status_code == 401
    assert excinfo.value.detail == "Session expired. Please log in again."
    assert len(calls) == 2
    assert saved_auth == []


async def test_second_401_is_not_retried_again(monkeypatch, state, saved_auth):
    calls = install(monkeypatch, [
        FakeResponse(401, {"detail": "expired"}),
        FakeResponse(200, {"access_token": "new-token", "refresh_token": "refresh-2"}),
        FakeResponse(401, {"detail": "still expired"}),
    ])
    service = ChatService(api_url="http://test/api", state=state)

    with pytest.raises(APIError) as excinfo:
        await service.get_chats()

    assert excinfo.value.detail == "still expired"
    assert len(calls) == 3


async def test_error_body_uses_error_field(monkeypatch, state):
    install(monkeypatch, [FakeResponse(404, {"error": "Partner user not found for: z@example.com"})])
    service = ChatService(api_url="http://test/api", state=state)

    with pytest.raises(APIError) as excinfo:
        await service.create_chat("z@example.com")

    assert excinfo.value.status_code == 404
    assert "Partner user not found" in excinfo.value.detail


async def test_network_failure_is_503(monkeypatch, state):
    def broken(*args, **kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "request", broken)

    with pytest.raises(APIError) as excinfo:
        await BaseService(api_url="http://test/api", state=state).get("/users/me")

    assert excinfo.value.status_code == 503


async def test_history_query_params(monkeypatch, state):
    calls = install(monkeypatch, [FakeResponse(200, [])])

    await ChatService(api_url="http://test/api", state=state).get_messages("y@example.com", limit=20)

    assert calls[0]["params"] == {"partnerEmail": "y@example.com", "limit": 20}

import asyncio
import threading

import pytest
import requests

from app.errors import UpstreamFailure
from app.upstream.prediction_client import PredictionClient


class FakeResponse:
    def __init__(self, status_code=200, payload=None, bad_json=False):
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def _call(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._call("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._call("GET", url, **kwargs)

    def close(self):
        pass


def _client(session):
    return PredictionClient(api_token="r8_test", model_version="v1", timeout=5, session=session)


def test_start_sends_version_input_and_token():
    session = FakeSession(FakeResponse(payload={"urls": {"get": "https://upstream.test/p/1"}}))
    client = _client(session)

    poll_url = asyncio.run(client.start({"image": "i", "clothing": "topwear", "prompt": "p"}))

    assert poll_url == "https://upstream.test/p/1"
    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://api.replicate.com/v1/predictions"
    assert kwargs["json"] == {"version": "v1", "input": {"image": "i", "clothing": "topwear", "prompt": "p"}}
    assert kwargs["timeout"] == 5
    assert session.headers["Authorization"] == "Token r8_test"


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.ConnectionError("refused")),
    FakeSession(FakeResponse(status_code=401, payload={"detail": "Unauthenticated"})),
    FakeSession(FakeResponse(bad_json=True)),
    FakeSession(FakeResponse(payload={"id": "abc"})),
    FakeSession(FakeResponse(payload={"urls": {"get": ""}})),
])
def test_start_failures_raise_upstream_failure(session):
    with pytest.raises(UpstreamFailure):
        _client(session).start_prediction({})


def test_poll_returns_payload():
    payload = {"status": "succeeded", "output": "https://cdn.test/out.png"}
    session = FakeSession(FakeResponse(payload=payload))

    assert asyncio.run(_client(session).poll("https://upstream.test/p/1")) == payload
    assert session.calls[0][:2] == ("GET", "https://upstream.test/p/1")


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.Timeout("slow")),
    FakeSession(FakeResponse(status_code=500)),
    FakeSession(FakeResponse(bad_json=True)),
    FakeSession(FakeResponse(payload=["not", "a", "dict"])),
])
def test_poll_failures_raise_upstream_failure(session):
    with pytest.raises(UpstreamFailure):
        _client(session).get_prediction("https://upstream.test/p/1")


class RecordingSession(FakeSession):
    created = []

    def __init__(self):
        super().__init__(FakeResponse(payload={"status": "processing"}))
        self.closed = False
        RecordingSession.created.append(self)

    def close(self):
        self.closed = True


def test_each_thread_gets_its_own_session(monkeypatch):
    RecordingSession.created = []
    monkeypatch.setattr(requests, "Session", RecordingSession)
    client = PredictionClient(api_token="r8_test", model_version="v1")

    def _poll_twice():
        client.get_prediction("https://upstream.test/p/1")
        client.get_prediction("https://upstream.test/p/1")

    threads = [threading.Thread(target=_poll_twice) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(RecordingSession.created) == 2
    assert all(len(s.calls) == 2 for s in RecordingSession.created)
    assert all(s.headers["Authorization"] == "Token r8_test" for s in RecordingSession.created)


def test_close_closes_every_session(monkeypatch):
    RecordingSession.created = []
    monkeypatch.setattr(requests, "Session", RecordingSession)
    client = PredictionClient(api_token="r8_test", model_version="v1")

    asyncio.run(client.poll("https://upstream.test/p/1"))
    client.get_prediction("https://upstream.test/p/1")
    client.close()

    assert len(RecordingSession.created) == 2
    assert all(s.closed for s in RecordingSession.created)

"""Shared fixtures: settings and an in-memory fake of the GitHub contents API."""

import base64
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app

CONTENTS_PREFIX = "/repos/octo/relay/contents/"


class FakeGitHub:
    """Minimal stand-in for the contents endpoints of one repository.

    Stored files are kept in ``self.files`` keyed by repository path.
    Flags switch individual endpoints into failure modes.
    """

    def __init__(self):
        self.files = {}
        self.requests = []
        self.fail_put = False
        self.fail_raw = False
        self.network_error = False
        self.metadata_extra = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.network_error:
            raise httpx.ConnectError("connection refused", request=request)

        assert request.url.path.startswith(CONTENTS_PREFIX)
        path = request.url.path[len(CONTENTS_PREFIX):]

        if request.method == "PUT":
            return self._put(path, request)
        if request.headers["Accept"] == "application/vnd.github.raw":
            return self._get_raw(path)
        return self._get_metadata(path)

    @property
    def put_requests(self):
        return [r for r in self.requests if r.method == "PUT"]

    def _put(self, path, request):
        if self.fail_put:
            return httpx.Response(422, json={"message": "Invalid request."})
        body = json.loads(request.content)
        self.files[path] = base64.b64decode(body["content"])
        return httpx.Response(201, json={"content": {"path": path}, "commit": {"sha": "c0ffee"}})

    def _get_raw(self, path):
        if self.fail_raw:
            return httpx.Response(503, json={"message": "Service unavailable"})
        if path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(200, content=self.files[path])

    def _get_metadata(self, path):
        if path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        encoded = base64.encodebytes(self.files[path]).decode("ascii")
        body = {"type": "file", "path": path, "encoding": "base64", "content": encoded}
        body.update(self.metadata_extra)
        return httpx.Response(200, json=body)


def make_settings(**overrides) -> Settings:
    values = {
        "github_token": "test-token",
        "github_owner": "octo",
        "github_repo": "relay",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def client(settings, fake_github):
    app = create_app(settings, transport=httpx.MockTransport(fake_github))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def make_client(fake_github):
    """Build a test client for custom settings; closed at teardown."""
    clients = []

    def _make(settings):
        app = create_app(settings, transport=httpx.MockTransport(fake_github))
        test_client = TestClient(app)
        test_client.__enter__()
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        test_client.__exit__(None, None, None)

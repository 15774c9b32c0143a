import json

import pytest
import requests

from strompreise.price_sources import StrompreiseClient
from strompreise.registry import ChartSession

BASE = "http://backend.test"


class FakeResponse:
    def __init__(self, body="", status_code=200):
        self.status_code = status_code
        self.text = body if isinstance(body, str) else json.dumps(body)

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return json.loads(self.text)

    def raise_for_status(self):
        if not self.ok:
            raise requests.exceptions.HTTPError(f"{self.status_code}")


class FakeSession:
    """Stands in for requests.Session; routes are keyed by URL path."""

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.headers = {}
        self.gets = []
        self.posts = []
        self.closed = False

    def get(self, url, params=None, timeout=None):
        path = url[len(BASE):]
        self.gets.append((path, params))
        route = self.routes.get(path, FakeResponse([], 200))
        if callable(route):
            route = route(params)
        if isinstance(route, Exception):
            raise route
        return route

    def post(self, url, json=None, timeout=None):
        self.posts.append((url[len(BASE):], json))
        return FakeResponse("", 200)

    def close(self):
        self.closed = True


class RecordingRenderer:
    def __init__(self):
        self.updates = 0
        self.resizes = 0
        self.destroyed = False

    def update(self):
        self.updates += 1

    def resize(self):
        self.resizes += 1

    def destroy(self):
        self.destroyed = True


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def client(fake_session):
    return StrompreiseClient(BASE, session=fake_session, timeout=1)


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def chart_session(renderer):
    session = ChartSession()
    session.attach(renderer)
    return session


@pytest.fixture
def quarter_hour_records():
    return [{"position": i + 1, "preis": f"{20 + i},5"} for i in range(96)]


@pytest.fixture
def respond():
    return FakeResponse

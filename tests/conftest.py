# tests/conftest.py
"""Shared fixtures: in-memory cache, a logged-in session and fake HTTP backends."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
import httpx
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fleetlog.database import create_tables
from fleetlog.services.kv_store import KeyValueStore
from fleetlog.services.session_store import SessionStore

API_URL = "https://api.test"
UPLOAD_URL = "https://bucket.test/upload/new"
DRIVER_USER = {"_id": "u-1", "name": "Ali Raza", "role": "driver", "mobileNumber": "03001234567"}


class FakeBackend:
    """Routes (method, path) to a canned response and records every request."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, method, path, status=200, body=None):
        self.routes[(method, path)] = (status, {} if body is None else body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        status, body = self.routes.get(
            (request.method, request.url.path),
            (404, {"message": f"No route for {request.method} {request.url.path}"}),
        )
        if callable(body):
            return body(request)
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, method, path=None):
        return [c for c in self.calls if c.method == method and (path is None or c.url.path == path)]

    @staticmethod
    def body_of(request: httpx.Request) -> dict:
        return json.loads(request.content)


@pytest.fixture
def kv():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=engine)
    yield KeyValueStore(sessionmaker(bind=engine, autoflush=False))
    engine.dispose()


@pytest.fixture
def session_store(kv):
    store = SessionStore(kv)
    store.login("tok-1", dict(DRIVER_USER))
    return store


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def bucket():
    return FakeBackend()

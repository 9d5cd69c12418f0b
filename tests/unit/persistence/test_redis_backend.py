"""Unit tests for RedisCacheBackend using fakeredis."""

from __future__ import annotations

import json
from unittest.mock import patch

import fakeredis
import pytest

from weldpay.core.exceptions import CacheError
from weldpay.persistence.redis_backend import RedisCacheBackend


@pytest.fixture
def fake_server():
    return fakeredis.FakeServer()


@pytest.fixture
def client(fake_server):
    return fakeredis.FakeRedis(server=fake_server, decode_responses=True)


@pytest.fixture
def backend(client):
    with patch("redis.Redis", return_value=client):
        return RedisCacheBackend(host="localhost", port=6379, db=0)


class TestGet:
    def test_returns_none_on_miss(self, backend):
        assert backend.get("nonexistent") is None

    def test_returns_stored_value(self, backend):
        data = {"id": "wt-weld", "calculation_type": "weld_count"}
        backend.setex("work_type:wt-weld", 300, json.dumps(data))
        assert backend.get("work_type:wt-weld") == json.dumps(data)


class TestSetex:
    def test_keys_are_namespaced(self, backend, client):
        backend.setex("overtime:wt-hourly", 60, "{}")
        assert client.get("weldpay:overtime:wt-hourly") == "{}"
        assert 0 < client.ttl("weldpay:overtime:wt-hourly") <= 60

    def test_overwrites_existing_value(self, backend):
        backend.setex("k", 60, "old")
        backend.setex("k", 60, "new")
        assert backend.get("k") == "new"


class TestDelete:
    def test_removes_existing_key(self, backend):
        backend.setex("k", 60, "v")
        backend.delete("k")
        assert backend.get("k") is None

    def test_missing_key_is_noop(self, backend):
        backend.delete("never-set")


class TestErrors:
    def test_connection_failure_raises_cache_error(self, backend, fake_server):
        fake_server.connected = False
        with pytest.raises(CacheError):
            backend.get("k")

from __future__ import annotations

from typing import Dict, List, Optional, Set

from storage.kv import InMemoryBackend, RedisBackend, build_backend, redact_url


class FakeRedis:
    def __init__(self) -> None:
        self._store: Dict[str, str] = {}
        self._sets: Dict[str, Set[str]] = {}
        self.ttls: Dict[str, int] = {}

    def get(self, name: str) -> Optional[str]:
        return self._store.get(name)

    def mget(self, keys) -> List[Optional[str]]:
        return [self._store.get(k) for k in keys]

    def set(self, name: str, value: str, *, ex: int | None = None):
        self._store[name] = value
        if ex is not None:
            self.ttls[name] = ex
        return True

    def delete(self, *names: str) -> int:
        removed = 0
        for name in names:
            removed += int(self._store.pop(name, None) is not None)
            removed += int(self._sets.pop(name, None) is not None)
        return removed

    def exists(self, *names: str) -> int:
        return sum(1 for n in names if n in self._store or self._sets.get(n))

    def sadd(self, name: str, *values: str) -> int:
        bucket = self._sets.setdefault(name, set())
        before = len(bucket)
        bucket.update(values)
        return len(bucket) - before

    def srem(self, name: str, *values: str) -> int:
        bucket = self._sets.get(name, set())
        before = len(bucket)
        bucket.difference_update(values)
        return before - len(bucket)

    def smembers(self, name: str) -> Set[str]:
        return set(self._sets.get(name, set()))

    def ping(self) -> bool:
        return True


def test_redis_backend_prefixes_keys_and_passes_ttl():
    client = FakeRedis()
    kv = RedisBackend(client, prefix="newsdesk")
    kv.set("research", "2025-03-10", "{}", ttl_seconds=60)
    assert client.get("newsdesk:research:2025-03-10") == "{}"
    assert client.ttls["newsdesk:research:2025-03-10"] == 60
    assert kv.get("research", "2025-03-10") == "{}"
    assert kv.exists("research", "2025-03-10")
    kv.delete("research", "2025-03-10")
    assert not kv.exists("research", "2025-03-10")


def test_redis_backend_sets_and_mget():
    client = FakeRedis()
    kv = RedisBackend(client)
    kv.sadd("stories", "published", "a", "b")
    kv.srem("stories", "published", "a")
    assert kv.smembers("stories", "published") == {"b"}
    kv.set("stories", "story:b", "B")
    assert kv.mget("stories", ["story:a", "story:b"]) == [None, "B"]
    assert kv.mget("stories", []) == []


def test_inmemory_backend_expires_lazily():
    now = [1000.0]
    kv = InMemoryBackend(clock=lambda: now[0])
    kv.set("research", "day", "v", ttl_seconds=10)
    assert kv.get("research", "day") == "v"
    now[0] += 10
    assert kv.get("research", "day") is None
    assert not kv.exists("research", "day")


def test_inmemory_backend_namespaces_are_isolated():
    kv = InMemoryBackend()
    kv.set("a", "k", "1")
    kv.sadd("a", "s", "x")
    assert kv.get("b", "k") is None
    assert kv.smembers("b", "s") == set()
    assert kv.smembers("a", "s") == {"x"}
    kv.srem("a", "s", "x")
    assert not kv.exists("a", "s")


def test_redact_url_hides_credentials():
    assert redact_url("redis://:s3cret@cache.internal:6380/0") == "redis://***@cache.internal:6380/0"
    assert redact_url("rediss://user:pw@cache.internal/1") == "rediss://***@cache.internal/1"
    assert redact_url("redis://localhost:6379/0") == "redis://localhost:6379/0"


def test_build_backend_logs_redacted_dsn(monkeypatch, caplog):
    import redis as redislib

    fake = FakeRedis()
    monkeypatch.setattr(redislib.Redis, "from_url", classmethod(lambda cls, url, **kw: fake))

    with caplog.at_level("INFO"):
        backend = build_backend("redis://:s3cret@cache.internal:6379/0", prefix="nd")

    backend.set("stories", "k", "v")
    assert fake.get("nd:stories:k") == "v"
    record = next(r for r in caplog.records if r.getMessage() == "kv.backend.redis")
    assert record.redis_url == "redis://***@cache.internal:6379/0"
    assert "s3cret" not in caplog.text

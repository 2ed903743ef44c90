"""Namespaced key-value backends (Redis, in-memory)."""

from __future__ import annotations

import time
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Set
from urllib.parse import urlsplit, urlunsplit

from ingestion.utils.logging import get_logger


class KeyValueBackend(Protocol):
    def get(self, namespace: str, key: str) -> Optional[str]: ...  # noqa: D401
    def mget(self, namespace: str, keys: Sequence[str]) -> List[Optional[str]]: ...  # noqa: D401
    def set(self, namespace: str, key: str, value: str, *, ttl_seconds: int | None = None) -> None: ...  # noqa: D401
    def delete(self, namespace: str, key: str) -> None: ...  # noqa: D401
    def exists(self, namespace: str, key: str) -> bool: ...  # noqa: D401
    def sadd(self, namespace: str, key: str, *members: str) -> None: ...  # noqa: D401
    def srem(self, namespace: str, key: str, *members: str) -> None: ...  # noqa: D401
    def smembers(self, namespace: str, key: str) -> Set[str]: ...  # noqa: D401


class InMemoryBackend:
    """Dict-backed backend for tests/local runs. Honors TTLs lazily on read."""

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._values: Dict[str, str] = {}
        self._sets: Dict[str, Set[str]] = {}
        self._expires: Dict[str, float] = {}
        self._clock = clock

    @staticmethod
    def _format(namespace: str, key: str) -> str:
        return f"{namespace}:{key}"

    def _expired(self, name: str) -> bool:
        deadline = self._expires.get(name)
        if deadline is None or self._clock() < deadline:
            return False
        self._values.pop(name, None)
        self._expires.pop(name, None)
        return True

    def get(self, namespace: str, key: str) -> Optional[str]:
        name = self._format(namespace, key)
        if self._expired(name):
            return None
        return self._values.get(name)

    def mget(self, namespace: str, keys: Sequence[str]) -> List[Optional[str]]:
        return [self.get(namespace, key) for key in keys]

    def set(self, namespace: str, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        name = self._format(namespace, key)
        self._values[name] = value
        if ttl_seconds is not None:
            self._expires[name] = self._clock() + ttl_seconds
        else:
            self._expires.pop(name, None)

    def delete(self, namespace: str, key: str) -> None:
        name = self._format(namespace, key)
        self._values.pop(name, None)
        self._sets.pop(name, None)
        self._expires.pop(name, None)

    def exists(self, namespace: str, key: str) -> bool:
        name = self._format(namespace, key)
        if self._expired(name):
            return False
        return name in self._values or bool(self._sets.get(name))

    def sadd(self, namespace: str, key: str, *members: str) -> None:
        if members:
            self._sets.setdefault(self._format(namespace, key), set()).update(members)

    def srem(self, namespace: str, key: str, *members: str) -> None:
        bucket = self._sets.get(self._format(namespace, key))
        if bucket is not None:
            bucket.difference_update(members)

    def smembers(self, namespace: str, key: str) -> Set[str]:
        return set(self._sets.get(self._format(namespace, key), set()))


class _RedisLikeClient(Protocol):
    def get(self, name: str) -> Optional[str]: ...
    def mget(self, keys: Iterable[str]) -> List[Optional[str]]: ...
    def set(self, name: str, value: str, *, ex: int | None = None) -> bool | None: ...
    def delete(self, *names: str) -> int: ...
    def exists(self, *names: str) -> int: ...
    def sadd(self, name: str, *values: str) -> int: ...
    def srem(self, name: str, *values: str) -> int: ...
    def smembers(self, name: str) -> Set[str]: ...


class RedisBackend:
    """Redis 기반 KeyValueBackend 구현.

    - 키 형식: `<prefix>:<namespace>:<key>` (prefix가 비어 있으면 생략)
    - 인덱스는 Redis set(SADD/SREM/SMEMBERS)으로 유지
    - 클라이언트는 `decode_responses=True`로 생성되어 str을 반환해야 함

    테스트에서는 redis-py 호환 fake 클라이언트를 주입한다.
    """

    def __init__(self, client: _RedisLikeClient, *, prefix: str = "") -> None:
        self._client = client
        self._prefix = prefix

    def _format(self, namespace: str, key: str) -> str:
        if self._prefix:
            return f"{self._prefix}:{namespace}:{key}"
        return f"{namespace}:{key}"

    def get(self, namespace: str, key: str) -> Optional[str]:
        return self._client.get(self._format(namespace, key))

    def mget(self, namespace: str, keys: Sequence[str]) -> List[Optional[str]]:
        if not keys:
            return []
        return list(self._client.mget([self._format(namespace, k) for k in keys]))

    def set(self, namespace: str, key: str, value: str, *, ttl_seconds: int | None = None) -> None:
        self._client.set(self._format(namespace, key), value, ex=ttl_seconds)

    def delete(self, namespace: str, key: str) -> None:
        self._client.delete(self._format(namespace, key))

    def exists(self, namespace: str, key: str) -> bool:
        return bool(self._client.exists(self._format(namespace, key)))

    def sadd(self, namespace: str, key: str, *members: str) -> None:
        if members:
            self._client.sadd(self._format(namespace, key), *members)

    def srem(self, namespace: str, key: str, *members: str) -> None:
        if members:
            self._client.srem(self._format(namespace, key), *members)

    def smembers(self, namespace: str, key: str) -> Set[str]:
        return set(self._client.smembers(self._format(namespace, key)))


def redact_url(url: str) -> str:
    """Drop credentials from a DSN before it reaches a log line."""
    parts = urlsplit(url)
    if parts.password is None and parts.username is None:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))


def build_backend(redis_url: str, *, prefix: str = "") -> KeyValueBackend:
    """Connect to Redis and check the connection with a ping."""
    import redis as redislib

    client = redislib.Redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=2)
    client.ping()
    get_logger(__name__).info("kv.backend.redis", extra={"redis_url": redact_url(redis_url), "prefix": prefix})
    return RedisBackend(client, prefix=prefix)

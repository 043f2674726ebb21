import os
from typing import Dict, List, Optional, Tuple, Union

import redis.asyncio as redis

TESTING = os.getenv("TESTING") == "1"
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
NAMESPACE = os.getenv("WORKUI_NAMESPACE", "work")


def namespace_prefix(namespace: str) -> str:
    if namespace and not namespace.endswith(":"):
        namespace += ":"
    return namespace


# Key names, shared with the workers that write them
def key_known_jobs(namespace: str) -> str:
    return namespace_prefix(namespace) + "known_jobs"


def key_jobs(namespace: str, job_name: str) -> str:
    return namespace_prefix(namespace) + "jobs:" + job_name


def key_worker_pools(namespace: str) -> str:
    return namespace_prefix(namespace) + "worker_pools"


def key_heartbeat(namespace: str, worker_pool_id: str) -> str:
    return namespace_prefix(namespace) + "worker_pools:" + worker_pool_id


def key_worker_observation(namespace: str, worker_id: str) -> str:
    return namespace_prefix(namespace) + "worker:" + worker_id


def key_retry(namespace: str) -> str:
    return namespace_prefix(namespace) + "retry"


def key_scheduled(namespace: str) -> str:
    return namespace_prefix(namespace) + "schedule"


def key_dead(namespace: str) -> str:
    return namespace_prefix(namespace) + "dead"


Score = Union[float, str]


def _score(value: Score) -> float:
    return float(value)


class AsyncInMemoryRedis:
    """The subset of redis.asyncio.Redis the job store needs, kept in process memory."""

    def __init__(self):
        self._hashes: Dict[str, Dict[str, str]] = {}
        self._lists: Dict[str, List[str]] = {}
        self._sets: Dict[str, set] = {}
        self._zsets: Dict[str, Dict[str, float]] = {}

    async def hset(self, name: str, key: Optional[str] = None, value: Optional[str] = None, mapping=None):
        h = self._hashes.setdefault(name, {})
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        added = len([k for k in items if k not in h])
        h.update({k: str(v) for k, v in items.items()})
        return added

    async def hgetall(self, name: str) -> Dict[str, str]:
        return dict(self._hashes.get(name, {}))

    async def sadd(self, name: str, *values: str):
        s = self._sets.setdefault(name, set())
        added = len([v for v in values if v not in s])
        s.update(values)
        return added

    async def smembers(self, name: str) -> set:
        return set(self._sets.get(name, set()))

    async def lpush(self, name: str, *values: str):
        lst = self._lists.setdefault(name, [])
        for v in values:
            lst.insert(0, v)
        return len(lst)

    async def llen(self, name: str) -> int:
        return len(self._lists.get(name, []))

    async def lindex(self, name: str, index: int) -> Optional[str]:
        lst = self._lists.get(name, [])
        try:
            return lst[index]
        except IndexError:
            return None

    async def lrange(self, name: str, start: int, end: int) -> List[str]:
        lst = self._lists.get(name, [])
        stop = None if end == -1 else end + 1
        return lst[start:stop]

    # zset methods
    async def zadd(self, name: str, mapping: Dict[str, float]):
        z = self._zsets.setdefault(name, {})
        added = 0
        for member, score in mapping.items():
            if member not in z:
                added += 1
            z[member] = score
        return added

    def _sorted(self, name: str) -> List[Tuple[str, float]]:
        z = self._zsets.get(name, {})
        return sorted(z.items(), key=lambda kv: (kv[1], kv[0]))

    async def zcard(self, name: str) -> int:
        return len(self._zsets.get(name, {}))

    async def zrange(self, name: str, start: int, end: int, withscores: bool = False):
        items = self._sorted(name)
        stop = None if end == -1 else end + 1
        picked = items[start:stop]
        return picked if withscores else [m for m, _ in picked]

    async def zrangebyscore(
        self,
        name: str,
        min: Score,
        max: Score,
        start: Optional[int] = None,
        num: Optional[int] = None,
        withscores: bool = False,
    ):
        low, high = _score(min), _score(max)
        picked = [(m, s) for m, s in self._sorted(name) if low <= s <= high]
        if start is not None and num is not None:
            picked = picked[start:start + num]
        return picked if withscores else [m for m, _ in picked]

    async def zrem(self, name: str, *members: str) -> int:
        z = self._zsets.get(name, {})
        removed = 0
        for m in members:
            if m in z:
                del z[m]
                removed += 1
        return removed

    async def delete(self, *names: str) -> int:
        removed = 0
        for name in names:
            for space in (self._hashes, self._lists, self._sets, self._zsets):
                if space.pop(name, None) is not None:
                    removed += 1
        return removed

    async def aclose(self):
        return None


def get_redis(url: str = REDIS_URL):
    """Return a client for the job store; an in-memory one when TESTING=1."""
    if TESTING:
        return AsyncInMemoryRedis()
    return redis.Redis.from_url(url, decode_responses=True)

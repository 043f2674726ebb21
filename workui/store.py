"""Job store client consumed by the management API.

`JobStoreClient` is the narrow interface the gateway depends on. `RedisJobStore`
implements it over the Redis layout written by gocraft/work style workers.
"""
import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Protocol, Tuple, Type, TypeVar

from pydantic import ValidationError
from redis.exceptions import RedisError

from . import metrics
from . import redis_helper as keys
from .errors import StoreError
from .schemas import (
    DeadJob,
    Job,
    QueueInfo,
    RetryJob,
    ScheduledJob,
    WorkerObservation,
    WorkerPoolHeartbeat,
)

logger = logging.getLogger(__name__)

JOBS_PER_PAGE = 20
REQUEUE_BATCH_SIZE = 1000

ERR_NOT_DELETED = "nothing deleted"
ERR_NOT_RETRIED = "nothing retried"

J = TypeVar("J", bound=Job)


class JobStoreClient(Protocol):
    async def list_queues(self) -> List[QueueInfo]: ...

    async def list_worker_pool_heartbeats(self) -> List[WorkerPoolHeartbeat]: ...

    async def list_worker_observations(self) -> List[WorkerObservation]: ...

    async def list_retry_jobs(self, page: int) -> Tuple[List[RetryJob], int]: ...

    async def list_scheduled_jobs(self, page: int) -> Tuple[List[ScheduledJob], int]: ...

    async def list_dead_jobs(self, page: int) -> Tuple[List[DeadJob], int]: ...

    async def delete_dead_job(self, died_at: int, job_id: str) -> None: ...

    async def retry_dead_job(self, died_at: int, job_id: str) -> None: ...

    async def delete_all_dead_jobs(self) -> None: ...

    async def retry_all_dead_jobs(self) -> None: ...

    async def close(self) -> None: ...


@asynccontextmanager
async def _store_call(call: str):
    start = time.time()
    try:
        yield
    except RedisError as exc:
        logger.warning("job store call %s failed: %s", call, exc)
        raise StoreError(str(exc)) from exc
    finally:
        metrics.store_latency_seconds.labels(call=call).observe(time.time() - start)


def _split_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return raw.split(",")


def _int(raw: Optional[str]) -> int:
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError as exc:
        raise StoreError(f"invalid integer field {raw!r}") from exc


def _decode_job(raw: str, model: Type[J] = Job, **extra: Any) -> J:
    try:
        data = json.loads(raw)
        return model(**{**data, **extra})
    except (ValueError, TypeError, ValidationError) as exc:
        raise StoreError(f"invalid job payload: {exc}") from exc


def _encode_job(data: Dict[str, Any]) -> str:
    return json.dumps(data, separators=(",", ":"))


class RedisJobStore:
    def __init__(self, redis_client, namespace: str = keys.NAMESPACE):
        self.redis = redis_client
        self.namespace = namespace

    async def list_queues(self) -> List[QueueInfo]:
        async with _store_call("list_queues"):
            names = sorted(await self.redis.smembers(keys.key_known_jobs(self.namespace)))
            now = int(time.time())
            queues = []
            for name in names:
                key = keys.key_jobs(self.namespace, name)
                count = await self.redis.llen(key)
                latency = 0
                if count > 0:
                    oldest = await self.redis.lindex(key, -1)
                    if oldest is not None:
                        latency = now - _decode_job(oldest).t
                queues.append(QueueInfo(job_name=name, count=count, latency=latency))
            return queues

    async def list_worker_pool_heartbeats(self) -> List[WorkerPoolHeartbeat]:
        async with _store_call("list_worker_pool_heartbeats"):
            pool_ids = sorted(await self.redis.smembers(keys.key_worker_pools(self.namespace)))
            heartbeats = []
            for pool_id in pool_ids:
                h = await self.redis.hgetall(keys.key_heartbeat(self.namespace, pool_id))
                heartbeats.append(
                    WorkerPoolHeartbeat(
                        worker_pool_id=pool_id,
                        started_at=_int(h.get("started_at")),
                        heartbeat_at=_int(h.get("heartbeat_at")),
                        job_names=_split_list(h.get("job_names")),
                        concurrency=_int(h.get("concurrency")),
                        host=h.get("host", ""),
                        pid=_int(h.get("pid")),
                        worker_ids=_split_list(h.get("worker_ids")),
                    )
                )
            return heartbeats

    async def list_worker_observations(self) -> List[WorkerObservation]:
        heartbeats = await self.list_worker_pool_heartbeats()
        async with _store_call("list_worker_observations"):
            observations = []
            for heartbeat in heartbeats:
                for worker_id in heartbeat.worker_ids:
                    h = await self.redis.hgetall(keys.key_worker_observation(self.namespace, worker_id))
                    observations.append(
                        WorkerObservation(
                            worker_id=worker_id,
                            is_busy=bool(h),
                            job_name=h.get("job_name", ""),
                            job_id=h.get("job_id", ""),
                            started_at=_int(h.get("started_at")),
                            args_json=h.get("args", ""),
                            checkin=h.get("checkin", ""),
                            checkin_at=_int(h.get("checkin_at")),
                        )
                    )
            return observations

    async def _page(self, key: str, page: int, model: Type[J], score_field: str) -> Tuple[List[J], int]:
        offset = (page - 1) * JOBS_PER_PAGE
        pairs = await self.redis.zrangebyscore(
            key, "-inf", "+inf", start=offset, num=JOBS_PER_PAGE, withscores=True
        )
        count = await self.redis.zcard(key)
        jobs = [_decode_job(raw, model, **{score_field: int(score)}) for raw, score in pairs]
        return jobs, count

    async def list_retry_jobs(self, page: int) -> Tuple[List[RetryJob], int]:
        async with _store_call("list_retry_jobs"):
            return await self._page(keys.key_retry(self.namespace), page, RetryJob, "retry_at")

    async def list_scheduled_jobs(self, page: int) -> Tuple[List[ScheduledJob], int]:
        async with _store_call("list_scheduled_jobs"):
            return await self._page(keys.key_scheduled(self.namespace), page, ScheduledJob, "run_at")

    async def list_dead_jobs(self, page: int) -> Tuple[List[DeadJob], int]:
        async with _store_call("list_dead_jobs"):
            return await self._page(keys.key_dead(self.namespace), page, DeadJob, "died_at")

    async def _find_dead(self, died_at: int, job_id: str) -> List[str]:
        members = await self.redis.zrangebyscore(keys.key_dead(self.namespace), died_at, died_at)
        return [raw for raw in members if _decode_job(raw).id == job_id]

    async def _requeue(self, raw: str, now: int) -> bool:
        # Only the caller that removed the member from the dead set pushes it.
        if not await self.redis.zrem(keys.key_dead(self.namespace), raw):
            return False
        data = json.loads(raw)
        for field in ("fails", "err", "failed_at"):
            data.pop(field, None)
        data["t"] = now
        await self.redis.sadd(keys.key_known_jobs(self.namespace), data["name"])
        await self.redis.lpush(keys.key_jobs(self.namespace, data["name"]), _encode_job(data))
        return True

    async def delete_dead_job(self, died_at: int, job_id: str) -> None:
        async with _store_call("delete_dead_job"):
            matches = await self._find_dead(died_at, job_id)
            removed = 0
            if matches:
                removed = await self.redis.zrem(keys.key_dead(self.namespace), *matches)
            if not removed:
                raise StoreError(ERR_NOT_DELETED)

    async def retry_dead_job(self, died_at: int, job_id: str) -> None:
        async with _store_call("retry_dead_job"):
            now = int(time.time())
            requeued = 0
            for raw in await self._find_dead(died_at, job_id):
                requeued += await self._requeue(raw, now)
            if not requeued:
                raise StoreError(ERR_NOT_RETRIED)

    async def delete_all_dead_jobs(self) -> None:
        async with _store_call("delete_all_dead_jobs"):
            await self.redis.delete(keys.key_dead(self.namespace))

    async def retry_all_dead_jobs(self) -> None:
        async with _store_call("retry_all_dead_jobs"):
            now = int(time.time())
            total = 0
            while True:
                batch = await self.redis.zrange(keys.key_dead(self.namespace), 0, REQUEUE_BATCH_SIZE - 1)
                if not batch:
                    break
                for raw in batch:
                    _decode_job(raw)
                    total += await self._requeue(raw, now)
            logger.info("requeued %d dead jobs", total)

    async def close(self) -> None:
        await self.redis.aclose()

import base64
import os

import pytest
from httpx import ASGITransport, AsyncClient

os.environ["TESTING"] = "1"

from workui.auth import AuthPolicy, Credential
from workui.errors import StoreError
from workui.main import create_app
from workui.schemas import (
    DeadJob,
    QueueInfo,
    RetryJob,
    ScheduledJob,
    WorkerObservation,
    WorkerPoolHeartbeat,
)

USERNAME = "admin"
PASSWORD = "s3cret"


def basic_auth(username: str = USERNAME, password: str = PASSWORD) -> dict:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


class FakeJobStore:
    """JobStoreClient double that keeps jobs in lists and records every call."""

    def __init__(self):
        self.calls = []
        self.error = None
        self.queues = []
        self.heartbeats = []
        self.observations = []
        self.retry = []
        self.scheduled = []
        self.dead = []
        self.queued = []

    def _record(self, name, *args):
        self.calls.append((name, args))
        if self.error is not None:
            raise StoreError(self.error)

    def _page(self, jobs, page):
        start = (page - 1) * 20
        return jobs[start:start + 20], len(jobs)

    async def list_queues(self):
        self._record("list_queues")
        return list(self.queues)

    async def list_worker_pool_heartbeats(self):
        self._record("list_worker_pool_heartbeats")
        return list(self.heartbeats)

    async def list_worker_observations(self):
        self._record("list_worker_observations")
        return list(self.observations)

    async def list_retry_jobs(self, page):
        self._record("list_retry_jobs", page)
        return self._page(self.retry, page)

    async def list_scheduled_jobs(self, page):
        self._record("list_scheduled_jobs", page)
        return self._page(self.scheduled, page)

    async def list_dead_jobs(self, page):
        self._record("list_dead_jobs", page)
        return self._page(self.dead, page)

    def _take_dead(self, died_at, job_id):
        for job in self.dead:
            if job.died_at == died_at and job.id == job_id:
                self.dead.remove(job)
                return job
        return None

    async def delete_dead_job(self, died_at, job_id):
        self._record("delete_dead_job", died_at, job_id)
        if self._take_dead(died_at, job_id) is None:
            raise StoreError("nothing deleted")

    async def retry_dead_job(self, died_at, job_id):
        self._record("retry_dead_job", died_at, job_id)
        job = self._take_dead(died_at, job_id)
        if job is None:
            raise StoreError("nothing retried")
        self.queued.append(job.id)

    async def delete_all_dead_jobs(self):
        self._record("delete_all_dead_jobs")
        self.dead = []

    async def retry_all_dead_jobs(self):
        self._record("retry_all_dead_jobs")
        self.queued.extend(job.id for job in self.dead)
        self.dead = []

    async def close(self):
        pass


def dead_job(job_id: str, died_at: int = 1700000000, name: str = "send_email") -> DeadJob:
    return DeadJob(name=name, id=job_id, t=died_at - 60, fails=4, err="boom", failed_at=died_at, died_at=died_at)


@pytest.fixture
def store():
    s = FakeJobStore()
    s.queues = [QueueInfo(job_name="send_email", count=3, latency=12)]
    s.heartbeats = [
        WorkerPoolHeartbeat(
            worker_pool_id="pool-1",
            started_at=1700000000,
            heartbeat_at=1700000100,
            job_names=["send_email"],
            concurrency=2,
            host="worker-a",
            pid=4242,
            worker_ids=["w1", "w2"],
        )
    ]
    s.retry = [RetryJob(name="send_email", id="r1", t=1700000000, fails=1, err="timeout", retry_at=1700000500)]
    s.scheduled = [ScheduledJob(name="send_email", id="s1", t=1700000000, run_at=1700009000)]
    s.dead = [dead_job("abc123")]
    s.observations = [WorkerObservation(worker_id="w1", is_busy=False)]
    return s


def make_client(store, policy=AuthPolicy.LEGACY) -> AsyncClient:
    app = create_app(store=store, credential=Credential(USERNAME, PASSWORD), auth_policy=policy)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver")


@pytest.fixture
async def client(store):
    async with make_client(store) as ac:
        yield ac


@pytest.fixture
async def strict_client(store):
    async with make_client(store, AuthPolicy.STRICT) as ac:
        yield ac

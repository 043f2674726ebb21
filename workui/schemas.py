from pydantic import BaseModel, ConfigDict, model_serializer
from typing import Any, Dict, List, Optional


# Left out of job JSON when unset; the other job fields are always written.
OMIT_WHEN_EMPTY = ("unique", "fails", "err", "failed_at")


class QueueInfo(BaseModel):
    job_name: str
    count: int
    latency: int


class WorkerPoolHeartbeat(BaseModel):
    worker_pool_id: str
    started_at: int
    heartbeat_at: int
    job_names: List[str]
    concurrency: int
    host: str
    pid: int
    worker_ids: List[str]


class WorkerObservation(BaseModel):
    worker_id: str
    is_busy: bool
    job_name: str = ""
    job_id: str = ""
    started_at: int = 0
    args_json: str = ""
    checkin: str = ""
    checkin_at: int = 0


class Job(BaseModel):
    # Unknown fields written by newer workers are carried through untouched.
    model_config = ConfigDict(extra="allow")

    name: str
    id: str
    t: int
    args: Optional[Dict[str, Any]] = None
    unique: Optional[bool] = None
    fails: Optional[int] = None
    err: Optional[str] = None
    failed_at: Optional[int] = None

    @model_serializer(mode="wrap")
    def _omit_empty(self, handler):
        data = handler(self)
        for field in OMIT_WHEN_EMPTY:
            if not data.get(field):
                data.pop(field, None)
        return data


class RetryJob(Job):
    retry_at: int


class ScheduledJob(Job):
    run_at: int


class DeadJob(Job):
    died_at: int


class RetryJobPage(BaseModel):
    count: int
    jobs: List[RetryJob]


class ScheduledJobPage(BaseModel):
    count: int
    jobs: List[ScheduledJob]


class DeadJobPage(BaseModel):
    count: int
    jobs: List[DeadJob]


class StatusResponse(BaseModel):
    status: str = "ok"

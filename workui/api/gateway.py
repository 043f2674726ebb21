from dataclasses import dataclass

from fastapi import APIRouter, Depends, Request
from fastapi.routing import APIRoute
from starlette.convertors import Convertor, register_url_convertor

from .. import metrics
from ..auth import AuthPolicy, Credential, admin_required
from ..pagination import parse_died_at, parse_page
from ..responder import json_content_type, render, render_errors
from ..schemas import DeadJobPage, RetryJobPage, ScheduledJobPage, StatusResponse
from ..store import JobStoreClient


class DiedAtConvertor(Convertor):
    # Segment must start with a digit; the full value is parsed in the handler.
    regex = "[0-9][^/]*"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value) -> str:
        return str(value)


register_url_convertor("died_at", DiedAtConvertor())


@dataclass(frozen=True)
class Gateway:
    """State shared by every request: the store handle and the operator credential."""

    store: JobStoreClient
    credential: Credential
    auth_policy: AuthPolicy = AuthPolicy.LEGACY


@dataclass(frozen=True)
class RequestContext:
    gateway: Gateway
    request: Request

    @property
    def store(self) -> JobStoreClient:
        return self.gateway.store


def get_context(request: Request) -> RequestContext:
    return RequestContext(gateway=request.app.state.gateway, request=request)


def _intercept(interceptor, handler):
    async def wrapped(request: Request):
        return await interceptor(request, handler)

    return wrapped


class GatewayRoute(APIRoute):
    """Route whose handler runs behind the API interceptors, outermost first."""

    interceptors = (admin_required, json_content_type, render_errors)

    def get_route_handler(self):
        handler = super().get_route_handler()
        for interceptor in reversed(self.interceptors):
            handler = _intercept(interceptor, handler)
        return handler


router = APIRouter(route_class=GatewayRoute)


@router.get("/queues")
async def queues(ctx: RequestContext = Depends(get_context)):
    return render(await ctx.store.list_queues())


@router.get("/worker_pools")
async def worker_pools(ctx: RequestContext = Depends(get_context)):
    return render(await ctx.store.list_worker_pool_heartbeats())


@router.get("/busy_workers")
async def busy_workers(ctx: RequestContext = Depends(get_context)):
    observations = await ctx.store.list_worker_observations()
    return render([ob for ob in observations if ob.is_busy])


@router.get("/retry_jobs")
async def retry_jobs(ctx: RequestContext = Depends(get_context)):
    page = parse_page(ctx.request)
    jobs, count = await ctx.store.list_retry_jobs(page)
    return render(RetryJobPage(count=count, jobs=jobs))


@router.get("/scheduled_jobs")
async def scheduled_jobs(ctx: RequestContext = Depends(get_context)):
    page = parse_page(ctx.request)
    jobs, count = await ctx.store.list_scheduled_jobs(page)
    return render(ScheduledJobPage(count=count, jobs=jobs))


@router.get("/dead_jobs")
async def dead_jobs(ctx: RequestContext = Depends(get_context)):
    page = parse_page(ctx.request)
    jobs, count = await ctx.store.list_dead_jobs(page)
    return render(DeadJobPage(count=count, jobs=jobs))


@router.post("/delete_dead_job/{died_at:died_at}/{job_id}")
async def delete_dead_job(died_at: str, job_id: str, ctx: RequestContext = Depends(get_context)):
    await ctx.store.delete_dead_job(parse_died_at(died_at), job_id)
    metrics.dead_job_actions_total.labels(action="delete").inc()
    return render(StatusResponse())


@router.post("/retry_dead_job/{died_at:died_at}/{job_id}")
async def retry_dead_job(died_at: str, job_id: str, ctx: RequestContext = Depends(get_context)):
    await ctx.store.retry_dead_job(parse_died_at(died_at), job_id)
    metrics.dead_job_actions_total.labels(action="retry").inc()
    return render(StatusResponse())


@router.post("/delete_all_dead_jobs")
async def delete_all_dead_jobs(ctx: RequestContext = Depends(get_context)):
    await ctx.store.delete_all_dead_jobs()
    metrics.dead_job_actions_total.labels(action="delete_all").inc()
    return render(StatusResponse())


@router.post("/retry_all_dead_jobs")
async def retry_all_dead_jobs(ctx: RequestContext = Depends(get_context)):
    await ctx.store.retry_all_dead_jobs()
    metrics.dead_job_actions_total.labels(action="retry_all").inc()
    return render(StatusResponse())

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from starlette.responses import Response

from . import auth, redis_helper
from .api import gateway as gateway_api
from .auth import AuthPolicy, Credential
from .metrics import metrics_response, request_latency_seconds
from .store import JobStoreClient, RedisJobStore

logger = logging.getLogger(__name__)

ASSETS_DIR = Path(__file__).parent / "assets"


def _load_asset(name: str) -> bytes:
    return (ASSETS_DIR / name).read_bytes()


def create_app(
    store: Optional[JobStoreClient] = None,
    credential: Optional[Credential] = None,
    auth_policy=None,
) -> FastAPI:
    """Build the management API around a job store client.

    Missing arguments fall back to the environment: a Redis-backed store on
    REDIS_URL / WORKUI_NAMESPACE, the WORKUI_USERNAME / WORKUI_PASSWORD pair and
    WORKUI_AUTH_POLICY.
    """
    if store is None:
        store = RedisJobStore(redis_helper.get_redis(), redis_helper.NAMESPACE)
    if credential is None:
        credential = Credential(auth.ADMIN_USERNAME, auth.ADMIN_PASSWORD)
    policy = AuthPolicy(auth_policy or auth.AUTH_POLICY)
    if policy is AuthPolicy.LEGACY:
        logger.warning(
            "legacy auth policy active: requests are rejected only when both username and password are wrong"
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await store.close()

    app = FastAPI(
        title="Work Web UI",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.gateway = gateway_api.Gateway(store=store, credential=credential, auth_policy=policy)
    app.include_router(gateway_api.router)

    index_html = _load_asset("index.html")
    work_js = _load_asset("work.js")

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        try:
            response = await call_next(request)
            return response
        finally:
            request_latency_seconds.observe(time.time() - start)

    @app.get("/", include_in_schema=False)
    async def index():
        return Response(content=index_html, media_type="text/html; charset=utf-8")

    @app.get("/work.js", include_in_schema=False)
    async def script():
        return Response(content=work_js, media_type="application/javascript; charset=utf-8")

    @app.get("/healthz", include_in_schema=False)
    async def healthz():
        return {"status": "ok"}

    @app.get("/metrics", include_in_schema=False)
    async def metrics():
        return metrics_response()

    return app


app = create_app()

import json
import logging

from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import Response

from . import metrics
from .errors import EncodeError, GatewayError

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def render(payload) -> Response:
    try:
        body = json.dumps(jsonable_encoder(payload), indent="\t", allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise EncodeError(str(exc)) from exc
    return Response(content=body)


def render_error(exc: Exception) -> Response:
    # The message is interpolated as-is; quotes in it are not escaped.
    metrics.error_count.inc()
    return Response(content='{"error": "%s"}' % exc, status_code=500)


async def json_content_type(request: Request, call_next) -> Response:
    response = await call_next(request)
    response.headers["Content-Type"] = JSON_CONTENT_TYPE
    return response


async def render_errors(request: Request, call_next) -> Response:
    try:
        return await call_next(request)
    except GatewayError as exc:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return render_error(exc)
    except (HTTPException, RequestValidationError):
        raise
    except Exception as exc:
        # Job store clients are free to raise their own exception types.
        logger.exception("%s %s failed", request.method, request.url.path)
        return render_error(exc)

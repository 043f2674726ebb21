import base64
import binascii
import hmac
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from .errors import AuthError

logger = logging.getLogger(__name__)

ADMIN_USERNAME = os.getenv("WORKUI_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("WORKUI_PASSWORD", "admin")
AUTH_POLICY = os.getenv("WORKUI_AUTH_POLICY", "legacy")

CHALLENGE = 'Basic realm="Restricted"'
NOT_AUTHORIZED = "Not authorized"


class AuthPolicy(str, Enum):
    # legacy: a request is turned away only when both username and password are wrong.
    LEGACY = "legacy"
    # strict: both fields must match.
    STRICT = "strict"


@dataclass(frozen=True)
class Credential:
    username: str
    password: str


def parse_basic_authorization(header: str) -> Tuple[str, str]:
    """Split an ``Authorization`` header value into (username, password).

    The scheme token is not inspected; any ``<scheme> <base64>`` pair is decoded.
    Raises AuthError with the message that ends up in the 401 body.
    """
    parts = header.split(" ", 1)
    if len(parts) != 2:
        raise AuthError(NOT_AUTHORIZED)

    try:
        decoded = base64.b64decode(parts[1], validate=True)
    except binascii.Error as exc:
        raise AuthError(str(exc)) from exc

    username, sep, password = decoded.decode("utf-8", errors="replace").partition(":")
    if not sep:
        raise AuthError(NOT_AUTHORIZED)
    return username, password


def _same(a: str, b: str) -> bool:
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def is_authorized(credential: Credential, username: str, password: str, policy: AuthPolicy) -> bool:
    user_ok = _same(username, credential.username)
    password_ok = _same(password, credential.password)
    if policy is AuthPolicy.STRICT:
        return user_ok and password_ok
    return user_ok or password_ok


def authenticate(request: Request, credential: Credential, policy: AuthPolicy) -> str:
    username, password = parse_basic_authorization(request.headers.get("Authorization", ""))
    if not is_authorized(credential, username, password, policy):
        raise AuthError(NOT_AUTHORIZED)
    return username


async def admin_required(request: Request, call_next) -> Response:
    gateway = request.app.state.gateway
    try:
        authenticate(request, gateway.credential, gateway.auth_policy)
    except AuthError as exc:
        logger.debug("rejected %s %s: %s", request.method, request.url.path, exc)
        response = PlainTextResponse(str(exc), status_code=exc.status_code)
    else:
        response = await call_next(request)
    response.headers["WWW-Authenticate"] = CHALLENGE
    return response

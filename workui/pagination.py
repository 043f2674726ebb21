import re

from starlette.requests import Request

from .errors import ParseError

_UNSIGNED = re.compile(r"[0-9]+")
_INT64_MAX = 2**63 - 1


def parse_page(request: Request) -> int:
    """Return the 1-based ``page`` query parameter, defaulting to 1 when absent or empty."""
    # The first value wins when the parameter is repeated.
    values = request.query_params.getlist("page")
    raw = values[0] if values else ""
    if raw == "":
        return 1
    if not _UNSIGNED.fullmatch(raw):
        raise ParseError(f"invalid page {raw!r}")
    page = int(raw)
    if page < 1:
        raise ParseError(f"invalid page {raw!r}: pages start at 1")
    return page


def parse_died_at(raw: str) -> int:
    if not _UNSIGNED.fullmatch(raw):
        raise ParseError(f"invalid died_at {raw!r}")
    died_at = int(raw)
    if died_at > _INT64_MAX:
        raise ParseError(f"invalid died_at {raw!r}: value out of range")
    return died_at

from __future__ import annotations


class GatewayError(Exception):
    """Base for every failure the management API reports to a caller."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class AuthError(GatewayError):
    status_code = 401


class ParseError(GatewayError):
    pass


class StoreError(GatewayError):
    pass


class EncodeError(GatewayError):
    pass

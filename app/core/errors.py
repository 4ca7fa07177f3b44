"""
Custom domain error taxonomy.

Every failure the API reports is a DomainError tagged with an ErrorKind;
the HTTP status for each kind is defined once in ERROR_STATUS and applied
by the exception handler in app.main.
"""
from enum import Enum
from typing import Any, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    INVALID_HOSTNAME = "INVALID_HOSTNAME"
    WILDCARD_NOT_ALLOWED = "WILDCARD_NOT_ALLOWED"
    APEX_NOT_ALLOWED = "APEX_NOT_ALLOWED"
    HOSTNAME_EXISTS = "HOSTNAME_EXISTS"
    DISTRIBUTION_NOT_FOUND = "DISTRIBUTION_NOT_FOUND"
    FORBIDDEN_DISTRIBUTION = "FORBIDDEN_DISTRIBUTION"
    DOMAIN_ID_REQUIRED = "DOMAIN_ID_REQUIRED"
    DOMAIN_NOT_FOUND = "DOMAIN_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    DNS_NOT_READY = "DNS_NOT_READY"
    CLOUDFLARE_HOSTNAME_MISSING = "CLOUDFLARE_HOSTNAME_MISSING"
    CLOUDFLARE_ERROR = "CLOUDFLARE_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.INVALID_PAYLOAD: 400,
    ErrorKind.INVALID_HOSTNAME: 400,
    ErrorKind.WILDCARD_NOT_ALLOWED: 400,
    ErrorKind.APEX_NOT_ALLOWED: 400,
    ErrorKind.HOSTNAME_EXISTS: 409,
    ErrorKind.DISTRIBUTION_NOT_FOUND: 404,
    ErrorKind.FORBIDDEN_DISTRIBUTION: 403,
    ErrorKind.DOMAIN_ID_REQUIRED: 400,
    ErrorKind.DOMAIN_NOT_FOUND: 404,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DNS_NOT_READY: 409,
    ErrorKind.CLOUDFLARE_HOSTNAME_MISSING: 400,
    ErrorKind.CLOUDFLARE_ERROR: 502,
    ErrorKind.CONFIGURATION_ERROR: 500,
}


class DomainError(Exception):
    def __init__(self, kind: ErrorKind, message: Optional[str] = None, **context: Any):
        super().__init__(message or kind.value)
        self.kind = kind
        self.message = message or kind.value
        self.context = context

    @property
    def status_code(self) -> int:
        return ERROR_STATUS[self.kind]

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": False, "error": self.kind.value}
        if self.message != self.kind.value:
            body["message"] = self.message
        body.update(self.context)
        return body


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))

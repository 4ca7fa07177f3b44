"""
Custom Domain Routing Middleware

Maps the Host header of an inbound request to the link served on that
custom domain. On a hit, `request.state.custom_domain_link_code` is set and
a request for `/` is rewritten to `/d/<link code>`.
"""

import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.models.custom_domain import DomainStatus
from app.services.resolution_cache import get_resolution_cache

logger = logging.getLogger("customdomains.domain")

RESOLVE_HEADER = "x-custom-domain-resolve"

_BYPASS_PREFIXES = ("/api", "/_next", "/dl", "/d/", "/m/", "/member", "/docs", "/redoc")
_BYPASS_PATHS = {"/d", "/m", "/favicon.ico", "/health", "/metrics", "/openapi.json"}


def should_bypass(path: str) -> bool:
    return path in _BYPASS_PATHS or path.startswith(_BYPASS_PREFIXES)


def lookup_link_code(host: str) -> Optional[str]:
    """Read-only store lookup; only active domains receive traffic."""
    from app.crud import crud_custom_domain
    from app.db.session import SessionLocal

    db = SessionLocal()
    try:
        record = crud_custom_domain.get_by_hostname(db, host)
        if record and record.status == DomainStatus.ACTIVE.value and record.distribution_code:
            logger.debug("Resolved custom domain %s → %s", host, record.distribution_code)
            return record.distribution_code
        return None
    finally:
        db.close()


class CustomDomainMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, cache=None, loader=lookup_link_code):
        super().__init__(app)
        self._cache = cache
        self._loader = loader

    @property
    def cache(self):
        return self._cache or get_resolution_cache()

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if request.headers.get(RESOLVE_HEADER) == "1" or should_bypass(path):
            return await call_next(request)

        host = request.headers.get("host", "").split(":")[0].strip().lower().rstrip(".")
        cache = self.cache
        if cache.is_bypassed(host):
            return await call_next(request)

        try:
            link_code = cache.resolve(host, self._loader)
        except Exception as e:
            logger.warning("Custom domain resolution failed for %s: %s", host, e)
            link_code = None

        if link_code:
            request.state.custom_domain_link_code = link_code
            if path in ("/", ""):
                request.scope["path"] = f"/d/{link_code}"
                request.scope["raw_path"] = request.scope["path"].encode()

        return await call_next(request)

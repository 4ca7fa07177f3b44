"""
Structured Logging Configuration

Every record carries the request id, the authenticated owner and, inside a
verify / refresh, the custom hostname being worked on. Credentials that can
end up in messages (bearer tokens, Cloudflare API tokens, database DSNs) are
masked before formatting. JSON in production / staging, one line per record
in development.
"""

import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from typing import Any

from app.config import settings

# ── Context variables for request tracking ──
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
owner_id_ctx: ContextVar[str] = ContextVar("owner_id", default="-")
hostname_ctx: ContextVar[str] = ContextVar("hostname", default="-")


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


# ── Masking ──

_REDACT_PATTERNS = [
    (re.compile(r'(Bearer\s+)[A-Za-z0-9._\-]+'), r'\1***'),
    (re.compile(r'("?(?:api_token|secret|password)"?\s*[:=]\s*)"[^"]*"', re.I), r'\1"***"'),
    (re.compile(r'([a-z][a-z0-9+]*://[^:/@\s]+:)[^@\s]+@', re.I), r'\1***@'),
]


def mask_secrets(text: str) -> str:
    for pattern, replacement in _REDACT_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _context() -> dict[str, str]:
    return {
        "request_id": request_id_ctx.get(),
        "owner_id": owner_id_ctx.get(),
        "hostname": hostname_ctx.get(),
    }


# ── Formatters ──

class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": mask_secrets(record.getMessage()),
            **_context(),
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        # Unset context stays out of the document
        entry = {k: v for k, v in entry.items() if v and v != "-"}
        return json.dumps(entry, ensure_ascii=False, default=str)


class HumanFormatter(logging.Formatter):
    FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-24s | [%(request_id)s %(owner_id)s %(hostname)s] %(message)s"

    def format(self, record: logging.LogRecord) -> str:
        for key, value in _context().items():
            setattr(record, key, value)
        record.msg = mask_secrets(str(record.msg))
        return super().format(record)


def setup_logging() -> None:
    """Configure application-wide logging."""
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    use_json = settings.LOG_FORMAT == "json" or (
        settings.LOG_FORMAT == "auto" and (settings.is_production or settings.is_staging)
    )
    if use_json:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(HumanFormatter(HumanFormatter.FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL.upper() if settings.LOG_LEVEL else (
        logging.INFO if use_json else logging.DEBUG
    ))

    # Outbound calls are logged by our own clients; keep the transport layers quiet
    for name in ("uvicorn.access", "httpcore", "httpx", "asyncio", "celery.worker.strategy"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

"""Hostname normalization for user-submitted custom domains."""
import re
from typing import Optional

MAX_HOSTNAME_LENGTH = 253
MAX_LABEL_LENGTH = 63

_SCHEME_RE = re.compile(r"^[a-z0-9.+-]+://", re.I)
_ALLOWED_RE = re.compile(r"[^a-z0-9.-]")
_LABEL_RE = re.compile(r"^[a-z0-9-]+$")


def normalize_hostname(raw: Optional[str]) -> Optional[str]:
    """
    Canonicalize `raw` into a lowercase hostname, or return None if invalid.

    Strips scheme, path/query, port and trailing dots before validating
    against RFC 1123 label rules. Wildcards never survive (`*` is not an
    allowed character). Requires at least two labels.
    """
    if not raw:
        return None
    value = raw.strip().lower()
    if not value:
        return None

    value = _SCHEME_RE.sub("", value)
    value = value.split("/")[0].split("?")[0]
    value = value.split(":")[0]
    value = value.rstrip(".")

    if not value or len(value) > MAX_HOSTNAME_LENGTH:
        return None
    if _ALLOWED_RE.search(value):
        return None
    if ".." in value:
        return None
    if value.startswith("-") or value.endswith("-"):
        return None

    labels = value.split(".")
    if len(labels) < 2:
        return None
    for label in labels:
        if not label or len(label) > MAX_LABEL_LENGTH:
            return None
        if not _LABEL_RE.match(label):
            return None
        if label.startswith("-") or label.endswith("-"):
            return None
    return value


def is_apex_hostname(hostname: str) -> bool:
    """True for bare registrable domains such as `example.com`."""
    labels = [label for label in hostname.split(".") if label]
    return len(labels) <= 2


def has_wildcard(raw: Optional[str]) -> bool:
    return bool(raw) and "*" in raw


def normalize_fqdn(value: Optional[str]) -> str:
    """Comparison form for DNS names: trimmed, lowercase, no trailing dot."""
    if not value:
        return ""
    return value.strip().lower().rstrip(".")

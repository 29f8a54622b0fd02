# FILE: app/providers/errors.py
"""
Provider error taxonomy.

Every failure that crosses the gateway boundary is a ProviderError carrying
a short `kind` string. Callers branch on `kind` rather than on message text:

    config      missing credential / model id, detected before any I/O
    timeout     request aborted after the hard timeout
    network     connection refused, DNS, TLS, reset, ...
    http        non-2xx response (status attached)
    rate_limit  HTTP 429 or a provider quota message
"""

from __future__ import annotations

import re
from typing import Optional

_RATE_LIMIT_RE = re.compile(r"rate.?limit|too many requests|quota|resource.?exhausted", re.IGNORECASE)


class ProviderError(Exception):
    """Base exception for provider calls."""
    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProviderConfigError(ProviderError):
    """Configuration is incomplete (no key, no model id)."""
    kind = "config"


class ProviderTransportError(ProviderError):
    """Request never produced an HTTP response."""
    kind = "network"


class ProviderTimeoutError(ProviderTransportError):
    """Request aborted after the hard timeout."""
    kind = "timeout"


class ProviderHTTPError(ProviderError):
    """Provider answered with a non-2xx status."""
    kind = "http"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimitError(ProviderHTTPError):
    """Provider refused the request because of rate limiting / quota."""
    kind = "rate_limit"


def looks_rate_limited(status_code: Optional[int], message: str = "") -> bool:
    if status_code == 429:
        return True
    return bool(message and _RATE_LIMIT_RE.search(message))


def http_error_for(status_code: int, message: str) -> ProviderHTTPError:
    """Build the right ProviderHTTPError subclass for a failed response."""
    if looks_rate_limited(status_code, message):
        return ProviderRateLimitError(message, status_code=status_code)
    return ProviderHTTPError(message, status_code=status_code)

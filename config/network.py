# FILE: config/network.py
"""Network settings for provider calls and connectivity probing.

All durations are in seconds. Each value can be overridden through the
environment (see .env.example).

  - MIN_CHECK_INTERVAL: cooldown between non-forced connectivity probes
  - REQUEST_TIMEOUT: hard upper bound for a probe request
  - PENALTY_DELAY: extended cooldown after a rate-limited probe
  - POLL_INTERVAL: background probe cadence
  - STREAM_IDLE_TIMEOUT: max silence between two chunks of a generation stream
"""

from __future__ import annotations

import os
from typing import Dict


def _float_env(name: str, default: float) -> float:
    v = os.getenv(name, "").strip()
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default


# =============================================================================
# Timing
# =============================================================================

MIN_CHECK_INTERVAL: float = _float_env("AUTOPLANNER_MIN_CHECK_INTERVAL_S", 20.0)
REQUEST_TIMEOUT: float = _float_env("AUTOPLANNER_REQUEST_TIMEOUT_S", 15.0)
PENALTY_DELAY: float = _float_env("AUTOPLANNER_PENALTY_DELAY_S", 60.0)
POLL_INTERVAL: float = _float_env("AUTOPLANNER_POLL_INTERVAL_S", 120.0)
STREAM_IDLE_TIMEOUT: float = _float_env("AUTOPLANNER_STREAM_IDLE_TIMEOUT_S", 60.0)

NETWORK_CONFIG: Dict[str, float] = {
    "MIN_CHECK_INTERVAL": MIN_CHECK_INTERVAL,
    "REQUEST_TIMEOUT": REQUEST_TIMEOUT,
    "PENALTY_DELAY": PENALTY_DELAY,
    "POLL_INTERVAL": POLL_INTERVAL,
    "STREAM_IDLE_TIMEOUT": STREAM_IDLE_TIMEOUT,
}

# =============================================================================
# Channel endpoints
# =============================================================================

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENAI_BASE_URL = os.getenv("AUTOPLANNER_OPENAI_BASE_URL") or "https://api.openai.com/v1"
# Used by "compatible" channels that were saved without a base URL.
COMPATIBLE_FALLBACK_BASE_URL = os.getenv("AUTOPLANNER_COMPATIBLE_BASE_URL") or OPENAI_BASE_URL

# Native Google models used when a config carries an empty model id
GOOGLE_DEFAULT_MODEL = "gemini-3-pro-preview"
GOOGLE_PROBE_MODEL = "gemini-3-flash-preview"

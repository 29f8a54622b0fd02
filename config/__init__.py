# FILE: config/__init__.py
"""Configuration package for AutoPlanner.

Contains:
- network.py: probe cooldown/backoff timings and channel endpoints
"""

from config.network import (
    NETWORK_CONFIG,
    MIN_CHECK_INTERVAL,
    REQUEST_TIMEOUT,
    PENALTY_DELAY,
    POLL_INTERVAL,
    STREAM_IDLE_TIMEOUT,
    OPENROUTER_BASE_URL,
    OPENAI_BASE_URL,
    COMPATIBLE_FALLBACK_BASE_URL,
    GOOGLE_DEFAULT_MODEL,
    GOOGLE_PROBE_MODEL,
)

__all__ = [
    "NETWORK_CONFIG",
    "MIN_CHECK_INTERVAL",
    "REQUEST_TIMEOUT",
    "PENALTY_DELAY",
    "POLL_INTERVAL",
    "STREAM_IDLE_TIMEOUT",
    "OPENROUTER_BASE_URL",
    "OPENAI_BASE_URL",
    "COMPATIBLE_FALLBACK_BASE_URL",
    "GOOGLE_DEFAULT_MODEL",
    "GOOGLE_PROBE_MODEL",
]

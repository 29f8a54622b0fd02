# FILE: app/providers/gateway.py
"""
Provider Gateway

Normalizes every configured channel into a plain stream of text deltas and
runs lightweight connectivity probes.

Channels:
- google      native streaming via google.generativeai (discrete text events)
- openai      POST <base>/chat/completions, event-stream response
- openrouter  same wire shape, fixed router URL
- compatible  same wire shape, user-supplied base URL

Generation never buffers the response: stream_generation() yields each
delta as it arrives and callers accumulate. Breaking out of the loop (or
cancelling the task) closes the underlying HTTP stream.

Failures cross this boundary only as ProviderError subclasses (see
app/providers/errors.py). probe() never raises; it folds every failure
into a ConnectivityReport.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import time
from typing import Any, AsyncGenerator, AsyncIterable, Awaitable, Callable, Dict, Optional, Union

import google.generativeai as genai
import httpx

from config.network import (
    REQUEST_TIMEOUT,
    STREAM_IDLE_TIMEOUT,
    OPENROUTER_BASE_URL,
    OPENAI_BASE_URL,
    COMPATIBLE_FALLBACK_BASE_URL,
    GOOGLE_DEFAULT_MODEL,
    GOOGLE_PROBE_MODEL,
)
from app.providers.config_store import parse_custom_params, resolve_api_key
from app.providers.errors import (
    ProviderError,
    ProviderConfigError,
    ProviderHTTPError,
    ProviderRateLimitError,
    ProviderTimeoutError,
    ProviderTransportError,
    http_error_for,
    looks_rate_limited,
)
from app.providers.schemas import AIConfig, ModelInstance, ConnectivityReport
from app.providers.sse import EventStreamDecoder

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request Timeout (Check Proxy/CORS)"

Sink = Callable[[str], Union[None, Awaitable[None]]]
GoogleModelFactory = Callable[[str, str, Optional[str]], Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


# =============================================================================
# URL / PROMPT HELPERS
# =============================================================================

def resolve_base_url(config: AIConfig) -> str:
    """Base URL for an HTTP channel, without trailing slashes."""
    if config.channel == "openrouter":
        base = OPENROUTER_BASE_URL
    elif config.channel == "openai":
        base = config.base_url or OPENAI_BASE_URL
    else:
        base = config.base_url or COMPATIBLE_FALLBACK_BASE_URL
    return base.strip().rstrip("/")


def build_user_prompt(intent: str, existing_summary: Optional[str] = None) -> str:
    """Prefix the request with a [CONTEXT] block when the project already has files."""
    if existing_summary:
        return f"[CONTEXT]\n{existing_summary}\n\n[USER]\n{intent}"
    return intent


def _error_message(raw: bytes, status_code: int, prefix: str) -> str:
    """Provider error message from a failed response body, else '<prefix> <status>'."""
    try:
        data = json.loads(raw or b"{}")
    except ValueError:
        data = None
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return f"{prefix} {status_code}"


def _chunk_text(chunk: Any) -> Optional[str]:
    # .text raises ValueError on chunks without text parts (safety stops, usage-only)
    try:
        return chunk.text
    except (AttributeError, ValueError):
        return None


def _google_error(e: Exception) -> ProviderError:
    code = getattr(e, "code", None)
    status = code if isinstance(code, int) else None
    message = str(getattr(e, "message", None) or e) or "Google API error"
    if looks_rate_limited(status, message):
        return ProviderRateLimitError(message, status_code=status)
    if status is not None:
        return ProviderHTTPError(message, status_code=status)
    return ProviderTransportError(f"Network Error: {message}")


def _bad_url_error(config: AIConfig, e: Exception) -> ProviderConfigError:
    return ProviderConfigError(f"Invalid base URL '{resolve_base_url(config)}': {e}")


async def _iter_with_idle_timeout(source: AsyncIterable, timeout: float):
    """Re-yield items, failing with asyncio.TimeoutError after `timeout` seconds of silence."""
    it = source.__aiter__()
    while True:
        try:
            item = await asyncio.wait_for(it.__anext__(), timeout)
        except StopAsyncIteration:
            return
        yield item


def default_google_model_factory(api_key: str, model_id: str, system_instruction: Optional[str] = None):
    genai.configure(api_key=api_key)
    return genai.GenerativeModel(model_name=model_id, system_instruction=system_instruction)


# =============================================================================
# GATEWAY
# =============================================================================

class ProviderGateway:
    """
    Entry point for generation streams and connectivity probes.

    transport and google_model_factory are injectable so both wire shapes can
    be exercised without network access.
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        google_model_factory: Optional[GoogleModelFactory] = None,
        request_timeout: float = REQUEST_TIMEOUT,
        stream_idle_timeout: float = STREAM_IDLE_TIMEOUT,
    ):
        self._transport = transport
        self._google_model_factory = google_model_factory or default_google_model_factory
        self.request_timeout = request_timeout
        self.stream_idle_timeout = stream_idle_timeout

    def _client(self, timeout: httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=timeout)

    @staticmethod
    def _headers(api_key: str) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    @staticmethod
    def _check_config(config: AIConfig, model: ModelInstance) -> str:
        """Return the API key to use, or raise ProviderConfigError."""
        if not model.model_id and not config.is_internal:
            raise ProviderConfigError("Missing Model ID")
        api_key = resolve_api_key(config)
        # compatible endpoints (local servers) may run without a key
        if not api_key and config.channel != "compatible":
            raise ProviderConfigError("API Key missing")
        return api_key

    # ============ GENERATION ============

    async def stream_generation(
        self,
        config: AIConfig,
        model: ModelInstance,
        system_prompt: str,
        user_prompt: str,
    ) -> AsyncGenerator[str, None]:
        """
        Stream text deltas for one generation request, in arrival order.

        Raises:
            ProviderConfigError: before any I/O when key / model id is missing
            ProviderTimeoutError, ProviderTransportError, ProviderHTTPError,
            ProviderRateLimitError: on transport or protocol failure
        """
        api_key = self._check_config(config, model)
        logger.info("[gateway] Generation via %s model=%s", config.channel, model.model_id or GOOGLE_DEFAULT_MODEL)

        if config.channel == "google":
            stream = self._stream_google(api_key, model, system_prompt, user_prompt)
        else:
            stream = self._stream_http(api_key, config, model, system_prompt, user_prompt)

        try:
            async for delta in stream:
                yield delta
        finally:
            await stream.aclose()

    async def generate(
        self,
        config: AIConfig,
        model: ModelInstance,
        system_prompt: str,
        user_prompt: str,
        sink: Sink,
    ) -> None:
        """Drive stream_generation() and hand every delta to `sink` (sync or async)."""
        async for delta in self.stream_generation(config, model, system_prompt, user_prompt):
            result = sink(delta)
            if inspect.isawaitable(result):
                await result

    async def generate_project_plan(
        self,
        config: AIConfig,
        model: ModelInstance,
        intent: str,
        existing_summary: Optional[str],
        on_stream: Sink,
        system_prompt: str,
    ) -> None:
        """generate() with the user prompt built from intent + existing-file summary."""
        await self.generate(config, model, system_prompt, build_user_prompt(intent, existing_summary), on_stream)

    async def _stream_google(
        self,
        api_key: str,
        model: ModelInstance,
        system_prompt: str,
        user_prompt: str,
    ) -> AsyncGenerator[str, None]:
        try:
            gm = self._google_model_factory(api_key, model.model_id or GOOGLE_DEFAULT_MODEL, system_prompt)
            response = await asyncio.wait_for(
                gm.generate_content_async(
                    user_prompt,
                    stream=True,
                    generation_config={"temperature": 0.7},
                ),
                self.request_timeout,
            )
            async for chunk in _iter_with_idle_timeout(response, self.stream_idle_timeout):
                text = _chunk_text(chunk)
                if text:
                    yield text
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(TIMEOUT_MESSAGE)
        except ProviderError:
            raise
        except Exception as e:
            raise _google_error(e) from e

    async def _stream_http(
        self,
        api_key: str,
        config: AIConfig,
        model: ModelInstance,
        system_prompt: str,
        user_prompt: str,
    ) -> AsyncGenerator[str, None]:
        url = f"{resolve_base_url(config)}/chat/completions"
        body: Dict[str, Any] = {
            "model": model.model_id,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "stream": True,
        }
        # extra params go last: they may override fields but never drop them
        body.update(parse_custom_params(model.custom_params))

        timeout = httpx.Timeout(self.stream_idle_timeout, connect=self.request_timeout)
        try:
            async with self._client(timeout) as client:
                async with client.stream("POST", url, json=body, headers=self._headers(api_key)) as resp:
                    if not resp.is_success:
                        raw = await resp.aread()
                        raise http_error_for(resp.status_code, _error_message(raw, resp.status_code, "Error"))

                    decoder = EventStreamDecoder()
                    async for chunk in resp.aiter_text():
                        for delta in decoder.feed(chunk):
                            yield delta
                        if decoder.done:
                            break
                    for delta in decoder.close():
                        yield delta

                    if decoder.skipped_lines:
                        logger.warning("[gateway] Skipped %d malformed stream lines", decoder.skipped_lines)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise _bad_url_error(config, e) from e
        except httpx.TimeoutException:
            raise ProviderTimeoutError(TIMEOUT_MESSAGE)
        except httpx.HTTPError as e:
            raise ProviderTransportError(f"Network Error: {e}") from e

    # ============ PROBING ============

    async def probe(self, config: AIConfig, model: ModelInstance) -> ConnectivityReport:
        """Minimal round-trip against the selected channel/model. Never raises."""
        channel_label = config.channel
        if config.channel == "google":
            channel_label = "Studio Internal" if config.is_internal else "Google Cloud"

        try:
            api_key = self._check_config(config, model)
        except ProviderConfigError as e:
            return ConnectivityReport(
                success=False,
                message=e.message,
                channel=channel_label,
                timestamp=_now_ms(),
                failure_kind=e.kind,
            )

        start = time.monotonic()
        try:
            if config.channel == "google":
                model_id = model.model_id or GOOGLE_PROBE_MODEL
                await asyncio.wait_for(self._probe_google(api_key, model_id), self.request_timeout)
                message = "Handshake Successful"
            else:
                model_id = model.model_id
                await asyncio.wait_for(self._probe_http(api_key, config, model_id), self.request_timeout)
                message = "Connect OK"
        except asyncio.TimeoutError:
            logger.warning("[gateway] Probe timed out for %s", channel_label)
            return ConnectivityReport(
                success=False,
                message=TIMEOUT_MESSAGE,
                channel=channel_label,
                timestamp=_now_ms(),
                failure_kind="timeout",
            )
        except ProviderError as e:
            logger.warning("[gateway] Probe failed for %s: %s", channel_label, e.message)
            return ConnectivityReport(
                success=False,
                message=e.message,
                channel=channel_label,
                timestamp=_now_ms(),
                failure_kind=e.kind,
            )
        except Exception as e:
            logger.exception("[gateway] Probe crashed for %s", channel_label)
            return ConnectivityReport(
                success=False,
                message=f"Network Error: {e}",
                channel=channel_label,
                timestamp=_now_ms(),
                failure_kind=ProviderTransportError.kind,
            )

        return ConnectivityReport(
            success=True,
            message=message,
            latency=int((time.monotonic() - start) * 1000),
            model_id=model_id,
            channel=channel_label,
            timestamp=_now_ms(),
        )

    async def _probe_google(self, api_key: str, model_id: str) -> None:
        try:
            gm = self._google_model_factory(api_key, model_id, None)
            await gm.generate_content_async("hi", generation_config={"max_output_tokens": 1})
        except asyncio.TimeoutError:
            raise
        except Exception as e:
            raise _google_error(e) from e

    async def _probe_http(self, api_key: str, config: AIConfig, model_id: str) -> None:
        url = f"{resolve_base_url(config)}/chat/completions"
        body = {
            "model": model_id,
            "messages": [{"role": "user", "content": "hi"}],
            "max_tokens": 5,
            "stream": False,
        }
        try:
            async with self._client(httpx.Timeout(self.request_timeout)) as client:
                resp = await client.post(url, json=body, headers=self._headers(api_key))
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise _bad_url_error(config, e) from e
        except httpx.TimeoutException:
            raise ProviderTimeoutError(TIMEOUT_MESSAGE)
        except httpx.HTTPError as e:
            raise ProviderTransportError(f"Network Error: {e}") from e

        if not resp.is_success:
            raise http_error_for(resp.status_code, _error_message(resp.content, resp.status_code, "Status:"))


_gateway: Optional[ProviderGateway] = None


def get_gateway() -> ProviderGateway:
    global _gateway
    if _gateway is None:
        _gateway = ProviderGateway()
    return _gateway

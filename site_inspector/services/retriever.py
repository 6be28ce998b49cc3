"""
Page retrieval with a relay fallback chain.

This module obtains raw page content for a URL. A direct request is tried
first; when the target blocks it or cannot be reached, an ordered list of
third-party relay endpoints is walked one at a time until one serves the page.

Features:
    - Direct request with bounded per-attempt timeout
    - Immutable, injectable relay list (fixed priority order)
    - Attempt cap and retrieval sub-budget independent of relay count
    - Linear backoff between relay attempts (tenacity)
    - Every failure classified: unreachable / blocked / timeout / http_error

Example:
    >>> async with Retriever() as retriever:
    ...     result = await retriever.retrieve("https://example.com/")
    ...     print(result.strategy_used, result.http_status)
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_before_delay,
)

from site_inspector.config.settings import Settings, get_settings
from site_inspector.models.schemas import (
    RelayEndpoint,
    RetrievalErrorKind,
    RetrievalResult,
)
from site_inspector.utils.logger import get_logger
from site_inspector.utils.retry import AppError, ErrorHandler, linear_backoff

logger = get_logger(__name__)

DIRECT_STRATEGY = "direct"
MAX_STYLESHEET_BYTES = 512 * 1024


# =============================================================================
# Exceptions
# =============================================================================

@dataclass(frozen=True)
class AttemptFailure:
    """Why a single retrieval attempt failed."""
    strategy: str
    kind: RetrievalErrorKind
    detail: str
    status: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.strategy}: {self.kind.value} ({self.detail})"


class RetrievalError(AppError):
    """Terminal retrieval failure. Aborts the pipeline."""

    def __init__(
        self,
        kind: RetrievalErrorKind,
        message: str,
        status: Optional[int] = None,
        attempts: Sequence[AttemptFailure] = (),
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.attempts = tuple(attempts)

    @property
    def relay_exhausted(self) -> bool:
        return any(a.strategy != DIRECT_STRATEGY for a in self.attempts)


class _AttemptFailed(Exception):
    """Internal signal carrying one attempt's classified failure."""

    def __init__(self, failure: AttemptFailure):
        super().__init__(str(failure))
        self.failure = failure


# =============================================================================
# Retriever
# =============================================================================

class Retriever:
    """
    Retrieves page content, falling back through relay endpoints.

    Attempts run strictly sequentially. The relay list is captured as an
    immutable tuple at construction; no state is kept between calls, so
    one instance may serve concurrent analyses.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        relays: Optional[Sequence[RelayEndpoint]] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the retriever.

        Args:
            settings: Application settings (uses defaults if not provided)
            relays: Relay endpoints in priority order (settings default)
            client: Pre-configured HTTP client (created lazily if not provided)
            transport: Transport for the lazily created client (tests)
            sleep: Coroutine used for the backoff between relay attempts
        """
        self.settings = settings or get_settings()
        self.relays: tuple[RelayEndpoint, ...] = tuple(
            relays if relays is not None else self.settings.relay_endpoints
        )
        self.request_timeout = self.settings.request_timeout_seconds
        self.budget_seconds = self.settings.effective_retrieval_budget
        self.max_attempts = self.settings.max_retrieval_attempts
        self.backoff_seconds = self.settings.relay_backoff_seconds
        self._client = client
        self._owns_client = client is None
        self._transport = transport
        self._sleep = sleep

    async def connect(self) -> None:
        """Initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": self.settings.user_agent,
                    "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
                    "Accept-Language": "en-US,en;q=0.9",
                },
                follow_redirects=True,
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                ),
                transport=self._transport,
            )
            self._owns_client = True

    async def close(self) -> None:
        """Close HTTP client if this retriever created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "Retriever":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # Public API
    # =========================================================================

    async def retrieve(self, url: str, budget_seconds: Optional[float] = None) -> RetrievalResult:
        """
        Retrieve raw page content for a normalized URL.

        Args:
            url: Target URL (already normalized)
            budget_seconds: Optional cap on the retrieval sub-budget

        Returns:
            RetrievalResult naming the strategy that served the content

        Raises:
            RetrievalError: When every strategy failed or the target
                answered with a non-blocking error status
        """
        await self.connect()

        budget = self.budget_seconds
        if budget_seconds is not None:
            budget = min(budget, budget_seconds)

        started = time.monotonic()
        deadline = started + budget
        failures: list[AttemptFailure] = []

        try:
            return await self._attempt(url, None, started, deadline)
        except _AttemptFailed as e:
            failures.append(e.failure)
            logger.warning("Direct retrieval failed", url=url, kind=e.failure.kind.value, detail=e.failure.detail)
            if not ErrorHandler.is_fallback_worthy(e.failure.kind):
                raise RetrievalError(
                    kind=e.failure.kind,
                    message=f"Target responded with HTTP {e.failure.status}: {url}",
                    status=e.failure.status,
                    attempts=failures,
                ) from e

        relays = self.relays[: max(0, self.max_attempts - 1)]
        remaining = deadline - time.monotonic()

        if relays and remaining > 0:
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(len(relays)) | stop_before_delay(remaining),
                    wait=linear_backoff(self.backoff_seconds),
                    sleep=self._sleep,
                    retry=retry_if_exception_type(_AttemptFailed),
                    reraise=True,
                ):
                    with attempt:
                        relay = relays[attempt.retry_state.attempt_number - 1]
                        try:
                            return await self._attempt(url, relay, started, deadline)
                        except _AttemptFailed as e:
                            failures.append(e.failure)
                            logger.warning(
                                "Relay retrieval failed",
                                url=url,
                                relay=relay.name,
                                kind=e.failure.kind.value,
                                detail=e.failure.detail,
                            )
                            raise
            except _AttemptFailed:
                pass

        raise self._exhausted(url, failures)

    async def fetch_stylesheet(self, url: str, timeout: Optional[float] = None) -> Optional[str]:
        """Best-effort direct fetch of a linked stylesheet. Never raises."""
        await self.connect()
        timeout = timeout if timeout is not None else self.request_timeout
        try:
            response = await asyncio.wait_for(
                self._client.get(url, timeout=timeout),
                timeout=timeout,
            )
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, OSError) as e:
            logger.debug("Stylesheet fetch failed", url=url, error=str(e))
            return None
        return response.text[:MAX_STYLESHEET_BYTES]

    # =========================================================================
    # Attempts
    # =========================================================================

    async def _attempt(
        self,
        url: str,
        relay: Optional[RelayEndpoint],
        started: float,
        deadline: float,
    ) -> RetrievalResult:
        """Run one attempt; raise _AttemptFailed with a classified failure."""
        strategy = relay.name if relay else DIRECT_STRATEGY
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise _AttemptFailed(AttemptFailure(strategy, RetrievalErrorKind.TIMEOUT, "retrieval budget exhausted"))

        timeout = min(self.request_timeout, remaining)
        request_url = relay.build_url(url) if relay else url

        logger.debug("Retrieval attempt", strategy=strategy, timeout=round(timeout, 2))

        try:
            response = await asyncio.wait_for(
                self._client.get(request_url, timeout=timeout),
                timeout=timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, OSError) as e:
            kind = ErrorHandler.classify_exception(e)
            raise _AttemptFailed(AttemptFailure(strategy, kind, str(e) or type(e).__name__)) from e

        if response.status_code >= 400:
            raise _AttemptFailed(AttemptFailure(
                strategy,
                ErrorHandler.classify_status(response.status_code),
                f"HTTP {response.status_code}",
                status=response.status_code,
            ))

        if relay is None:
            body = response.text
            final_url = str(response.url)
            http_status = response.status_code
            content_bytes = len(response.content)
        else:
            body, final_url, http_status = self._unwrap_relay(relay, response, url)
            content_bytes = len(body.encode("utf-8"))

        if not body or not body.strip():
            raise _AttemptFailed(AttemptFailure(strategy, RetrievalErrorKind.BLOCKED, "empty body"))

        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Retrieval succeeded",
            strategy=strategy,
            status=http_status,
            bytes=content_bytes,
            elapsed_ms=elapsed_ms,
        )

        return RetrievalResult(
            final_url=final_url,
            body=body,
            strategy_used=strategy,
            http_status=http_status,
            elapsed_ms=elapsed_ms,
            content_bytes=content_bytes,
            content_type=response.headers.get("content-type"),
        )

    @staticmethod
    def _unwrap_relay(
        relay: RelayEndpoint,
        response: httpx.Response,
        url: str,
    ) -> tuple[str, str, int]:
        """Extract (body, final_url, status) from a relay response."""
        if relay.response_format == "raw":
            return response.text, url, response.status_code

        try:
            payload = response.json()
        except ValueError as e:
            raise _AttemptFailed(AttemptFailure(relay.name, RetrievalErrorKind.BLOCKED, "malformed relay JSON")) from e

        if not isinstance(payload, dict):
            raise _AttemptFailed(AttemptFailure(relay.name, RetrievalErrorKind.BLOCKED, "unexpected relay payload"))

        body = payload.get(relay.json_field)
        if not isinstance(body, str):
            raise _AttemptFailed(AttemptFailure(relay.name, RetrievalErrorKind.BLOCKED, f"relay field '{relay.json_field}' missing"))

        status = response.status_code
        final_url = url
        info = payload.get("status")
        if isinstance(info, dict):
            upstream = info.get("http_code")
            if isinstance(upstream, int):
                if upstream >= 400:
                    raise _AttemptFailed(AttemptFailure(
                        relay.name,
                        ErrorHandler.classify_status(upstream),
                        f"upstream HTTP {upstream}",
                        status=upstream,
                    ))
                status = upstream
            if isinstance(info.get("url"), str):
                final_url = info["url"]

        return body, final_url, status

    @staticmethod
    def _exhausted(url: str, failures: list[AttemptFailure]) -> RetrievalError:
        """Build the terminal error once every strategy has failed."""
        kinds = {f.kind for f in failures}
        kind = kinds.pop() if len(kinds) == 1 else RetrievalErrorKind.BLOCKED
        status = next((f.status for f in reversed(failures) if f.status is not None), None)
        summary = "; ".join(str(f) for f in failures)

        logger.error("All retrieval strategies failed", url=url, kind=kind.value, attempts=len(failures))

        return RetrievalError(
            kind=kind,
            message=f"Could not retrieve {url} ({kind.value}). Attempts: {summary}",
            status=status,
            attempts=failures,
        )

"""Paginated search orchestrator for TypoGuard."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from typoguard.errors import ProviderError
from typoguard.models import ScanOutcome
from typoguard.search.base import BaseSearchProvider

logger = logging.getLogger(__name__)

# Type alias for the optional progress callback.
# Signature: on_event(event_type: str, data: dict) -> None
EventCallback = Callable[[str, dict], None] | None

RESULTS_PER_PAGE = 10


# ---------------------------------------------------------------------------
# Pacing policies
# ---------------------------------------------------------------------------

class FixedDelayPacer:
    """Sleep a fixed interval between provider calls."""

    def __init__(self, seconds: float, sleep: Callable[[float], None] = time.sleep) -> None:
        self.seconds = seconds
        self._sleep = sleep

    def wait(self) -> None:
        if self.seconds > 0:
            self._sleep(self.seconds)


class NoDelayPacer:
    """Pacer that never waits. Meant for tests and offline providers."""

    def wait(self) -> None:
        return None


# ---------------------------------------------------------------------------
# Event helpers
# ---------------------------------------------------------------------------

def _emit(on_event: EventCallback, event_type: str, data: dict) -> None:
    """Report scan progress to the caller.

    The orchestrator sends one "page" event per requested page, carrying
    the 1-based page number, whether the fetch succeeded, and either the
    result count or the provider error. A failing callback is logged and
    never interrupts the scan.
    """
    if on_event is None:
        return
    try:
        on_event(event_type, data)
    except Exception:
        logger.debug("Progress callback raised on %s event", event_type, exc_info=True)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ScanOrchestrator:
    """Fetch several result pages for one query, one page at a time.

    Pages are never fetched concurrently so the pacing interval between
    calls holds. A failed page is recorded and the scan moves on.
    """

    def __init__(
        self,
        provider: BaseSearchProvider,
        pacer: Any = None,
        request_timeout: float | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            provider: The search provider to query.
            pacer: Object with a ``wait()`` method called between pages.
                Defaults to a 0.5 second FixedDelayPacer.
            request_timeout: Per-request timeout handed to the provider.
        """
        self.provider = provider
        self.pacer = pacer if pacer is not None else FixedDelayPacer(0.5)
        self.request_timeout = request_timeout

    @classmethod
    def from_config(cls, provider: BaseSearchProvider, config: dict[str, Any]) -> "ScanOrchestrator":
        scan_cfg = config.get("scan") or {}
        search_cfg = config.get("search") or {}
        return cls(
            provider,
            pacer=FixedDelayPacer(float(scan_cfg.get("page_delay_seconds", 0.5))),
            request_timeout=search_cfg.get("timeout"),
        )

    def run_scan(
        self,
        query: str,
        geolocation: str,
        page_count: int,
        deadline_seconds: float | None = None,
        on_event: EventCallback = None,
    ) -> ScanOutcome:
        """Search ``page_count`` result pages and collect organic results.

        Args:
            query: The search query.
            geolocation: Region code passed to the provider.
            page_count: Number of pages to request (offsets 0, 10, 20, ...).
            deadline_seconds: Optional bound on the whole scan. Once it has
                passed, the remaining pages are recorded as failed without
                calling the provider.
            on_event: Optional callback receiving a "page" event per page.

        Returns:
            ScanOutcome with results in page order, page and error counts.
        """
        outcome = ScanOutcome()
        first_success = True
        expires_at = (
            time.monotonic() + deadline_seconds if deadline_seconds is not None else None
        )

        logger.info("Scanning %d page(s) for %r (%s)", page_count, query, geolocation)

        for page in range(page_count):
            offset = page * RESULTS_PER_PAGE
            try:
                serp = self.provider.search(
                    query, geolocation, offset, timeout=self._call_timeout(expires_at),
                )
            except ProviderError as exc:
                message = f"Failed to fetch page {page + 1}: {exc}"
                logger.warning(message)
                outcome.errors.append(message)
                _emit(on_event, "page", {"page": page + 1, "ok": False, "error": str(exc)})
            else:
                outcome.pages_scanned += 1
                outcome.results.extend(serp.organic_results)
                if first_success:
                    outcome.total_results = serp.total_organic_results
                    first_success = False
                _emit(on_event, "page", {
                    "page": page + 1,
                    "ok": True,
                    "results": len(serp.organic_results),
                })

            if page < page_count - 1 and not _expired(expires_at):
                self.pacer.wait()

        logger.info(
            "Scan for %r finished: %d/%d pages, %d results, %d error(s)",
            query, outcome.pages_scanned, page_count, len(outcome.results), len(outcome.errors),
        )
        return outcome

    def _call_timeout(self, expires_at: float | None) -> float | None:
        """Per-call timeout, capped by the time left before the deadline."""
        if expires_at is None:
            return self.request_timeout
        remaining = expires_at - time.monotonic()
        if remaining <= 0:
            raise ProviderError("scan deadline exceeded")
        if self.request_timeout is None:
            return remaining
        return min(float(self.request_timeout), remaining)


def _expired(expires_at: float | None) -> bool:
    return expires_at is not None and time.monotonic() >= expires_at

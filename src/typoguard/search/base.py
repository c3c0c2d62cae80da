"""Base search provider interface for TypoGuard."""

from __future__ import annotations

from abc import ABC, abstractmethod

from typoguard.models import SerpPage


class BaseSearchProvider(ABC):
    """Abstract base class for SERP providers.

    Each provider fetches one page of organic search results for a query
    in a given region.
    """

    name: str = ""

    @abstractmethod
    def search(
        self,
        query: str,
        geolocation: str,
        page_offset: int,
        timeout: float | None = None,
    ) -> SerpPage:
        """Fetch one page of search results.

        Args:
            query: The search query.
            geolocation: Two-letter region code the search runs from.
            page_offset: Result offset (0, 10, 20, ...).
            timeout: Optional request timeout in seconds.

        Returns:
            The parsed SerpPage.

        Raises:
            ProviderAuthError: Credentials are missing or rejected.
            ProviderError: Any other failure to fetch or parse the page.
        """
        ...

"""Zyte API SERP provider (Google search results)."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote_plus

import requests

from typoguard.errors import ProviderAuthError, ProviderError
from typoguard.models import OrganicResult, SerpPage
from typoguard.search.base import BaseSearchProvider

logger = logging.getLogger(__name__)


class ZyteSearchProvider(BaseSearchProvider):
    """Search Google through Zyte's extraction API.

    Requires a Zyte API key; it is sent as the basic-auth user name.
    """

    name = "Zyte"

    def __init__(
        self,
        api_key: str,
        timeout: float = 30,
        api_url: str = "https://api.zyte.com/v1/extract",
    ) -> None:
        """Initialize with API key.

        Args:
            api_key: Zyte API key.
            timeout: Default request timeout in seconds.
            api_url: Extraction endpoint.
        """
        self.api_key = api_key
        self.timeout = timeout
        self.api_url = api_url

    @staticmethod
    def build_search_url(query: str, page_offset: int) -> str:
        url = f"https://www.google.com/search?q={quote_plus(query)}"
        if page_offset > 0:
            url += f"&start={page_offset}"
        return url

    def search(
        self,
        query: str,
        geolocation: str,
        page_offset: int,
        timeout: float | None = None,
    ) -> SerpPage:
        """Fetch one Google results page via Zyte.

        Args:
            query: The search query.
            geolocation: Region code, e.g. 'GB'.
            page_offset: Result offset (0 for the first page).
            timeout: Request timeout override in seconds.

        Returns:
            SerpPage with organic results and the reported total.
        """
        if not self.api_key:
            raise ProviderAuthError("Zyte API key not configured")

        payload = {
            "url": self.build_search_url(query, page_offset),
            "serp": True,
            "serpOptions": {"extractFrom": "httpResponseBody"},
            "geolocation": geolocation,
            "followRedirect": True,
        }

        try:
            response = requests.post(
                self.api_url,
                json=payload,
                auth=(self.api_key, ""),
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Zyte request failed: {e}") from e

        if response.status_code in (401, 403):
            raise ProviderAuthError(f"Zyte rejected credentials (status {response.status_code})")

        if response.status_code != 200:
            logger.debug("Zyte error body: %s", response.text[:500])
            raise ProviderError(f"Zyte API returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Zyte returned invalid JSON: {e}") from e

        try:
            return self._parse_serp(data.get("serp") or {})
        except (AttributeError, TypeError, ValueError) as e:
            logger.debug("Unexpected Zyte payload: %r", data)
            raise ProviderError(f"Zyte returned an unexpected SERP payload: {e}") from e

    @staticmethod
    def _parse_serp(serp: dict[str, Any]) -> SerpPage:
        results = []
        for item in serp.get("organicResults") or []:
            if not item.get("url"):
                continue
            results.append(
                OrganicResult(
                    url=str(item["url"]),
                    name=item.get("name") or "",
                    description=item.get("description") or "",
                    rank=item.get("rank"),
                )
            )

        metadata = serp.get("metadata") or {}
        return SerpPage(
            organic_results=results,
            total_organic_results=int(metadata.get("totalOrganicResults") or 0),
        )

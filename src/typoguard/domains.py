"""Root domain extraction for search result URLs."""

from __future__ import annotations

import logging
from ipaddress import ip_address
from urllib.parse import urlparse

import tldextract

logger = logging.getLogger(__name__)


class DomainNormalizer:
    """Reduce URLs and hostnames to their registrable domain.

    Uses the public suffix snapshot bundled with tldextract, so
    ``shop.example.co.uk`` becomes ``example.co.uk``. When the suffix list
    is disabled, or does not recognise the suffix, the last two labels
    are kept instead.
    """

    def __init__(self, use_suffix_list: bool = True) -> None:
        # Empty suffix_list_urls keeps tldextract offline: it reads only
        # the snapshot shipped with the package.
        self._extract = (
            tldextract.TLDExtract(suffix_list_urls=()) if use_suffix_list else None
        )

    def normalize(self, value: str) -> str:
        """Return the lower-cased registrable domain for a URL or hostname.

        Never raises. Input that cannot be parsed comes back lower-cased
        and otherwise unchanged.

        Args:
            value: A URL (with or without scheme) or bare hostname.

        Returns:
            The normalized root domain.
        """
        raw = (value or "").strip()
        fallback = raw.lower()
        if not raw:
            return fallback

        url = raw if "://" in raw else f"https://{raw}"
        try:
            hostname = urlparse(url).hostname
        except ValueError:
            logger.debug("Unparseable domain input: %r", value)
            return fallback
        if not hostname:
            return fallback

        hostname = hostname.lower().rstrip(".")
        if hostname.startswith("www."):
            hostname = hostname[4:]

        if _is_ip(hostname):
            return hostname

        if self._extract is not None:
            extracted = self._extract(hostname)
            if extracted.domain and extracted.suffix:
                return f"{extracted.domain}.{extracted.suffix}"

        return ".".join(hostname.split(".")[-2:])


def _is_ip(hostname: str) -> bool:
    try:
        ip_address(hostname)
    except ValueError:
        return False
    return True


def base_label(domain: str) -> str:
    """First label of a domain (``monster-casino`` for ``monster-casino.com``)."""
    return domain.split(".")[0]


_default_normalizer = DomainNormalizer()


def normalize(value: str) -> str:
    """Normalize with the shared default normalizer."""
    return _default_normalizer.normalize(value)

"""Exception types raised by TypoGuard."""

from __future__ import annotations


class TypoguardError(Exception):
    """Base class for all TypoGuard errors."""


class ProviderError(TypoguardError):
    """A single search provider request failed."""


class ProviderAuthError(ProviderError):
    """The search provider rejected our credentials."""


class DuplicateDomain(TypoguardError):
    """An impostor with this domain already exists for the brand."""

    def __init__(self, brand_id: str, domain: str) -> None:
        super().__init__(f"Imposter {domain!r} already exists for brand {brand_id}")
        self.brand_id = brand_id
        self.domain = domain


class InvalidTransition(TypoguardError):
    """A requested state change is not allowed by the lifecycle."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Invalid transition: {current} -> {requested}")
        self.current = current
        self.requested = requested


class NotFound(TypoguardError):
    """A referenced brand, scan, imposter or report does not exist."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key

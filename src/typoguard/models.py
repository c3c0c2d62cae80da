"""Data models for TypoGuard scans and impostor tracking."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ScanStatus(str, Enum):
    """Lifecycle of a single scan run."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ImposterStatus(str, Enum):
    """Review status of a suspected impostor domain."""

    SUSPECTED = "SUSPECTED"
    CONFIRMED = "CONFIRMED"
    FALSE_POSITIVE = "FALSE_POSITIVE"
    RESOLVED = "RESOLVED"


class ImposterSource(str, Enum):
    """How an impostor entered the system."""

    GOOGLE_SEARCH = "GOOGLE_SEARCH"
    MANUAL = "MANUAL"


class ReportType(str, Enum):
    """Takedown channel a report is filed with."""

    CLOUDFLARE = "CLOUDFLARE"
    HOSTING = "HOSTING"
    GOOGLE_LEGAL = "GOOGLE_LEGAL"
    GOOGLE_COPYRIGHT = "GOOGLE_COPYRIGHT"
    DOMAIN_REGISTRAR = "DOMAIN_REGISTRAR"
    DOMAIN_OWNER = "DOMAIN_OWNER"


class ReportStatus(str, Enum):
    """Status of a takedown report on one channel."""

    NOT_REPORTED = "NOT_REPORTED"
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"
    NO_RESPONSE = "NO_RESPONSE"


@dataclass
class OrganicResult:
    """A single organic search result."""

    url: str
    name: str = ""
    description: str = ""
    rank: int | None = None


@dataclass
class SerpPage:
    """One page of search results returned by a search provider."""

    organic_results: list[OrganicResult] = field(default_factory=list)
    total_organic_results: int = 0


@dataclass
class ScanOutcome:
    """Aggregated output of a multi-page search run."""

    results: list[OrganicResult] = field(default_factory=list)
    pages_scanned: int = 0
    total_results: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def any_page_succeeded(self) -> bool:
        return self.pages_scanned > 0


@dataclass
class Candidate:
    """A search result domain classified as a likely impostor."""

    domain: str
    full_url: str
    page_title: str
    page_description: str
    search_rank: int
    matched_rule: str = ""
    edit_distance: int = 0


@dataclass
class ScanParams:
    """Parameters a scan was started with."""

    search_keyword: str
    geolocation: str = "GB"
    requested_pages: int = 10


@dataclass
class ReportDetails:
    """Optional fields recorded alongside a report status update.

    ``None`` means "not supplied" and leaves the stored value untouched.
    """

    notes: str | None = None
    ticket_number: str | None = None
    response_received: bool | None = None
    contact_email: str | None = None
    response_notes: str | None = None
    acting_user: str | None = None

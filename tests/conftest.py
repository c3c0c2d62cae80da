"""Shared fixtures: in-memory store, scripted search provider, wired service."""
from __future__ import annotations

import pytest

from typoguard.analyzer import ImpostorAnalyzer
from typoguard.brands import Brand, BrandDirectory
from typoguard.database import init_db, make_engine, make_session_factory
from typoguard.errors import ProviderError
from typoguard.models import OrganicResult, SerpPage
from typoguard.scanner import NoDelayPacer, ScanOrchestrator
from typoguard.search.base import BaseSearchProvider
from typoguard.service import ImposterService
from typoguard.store import LifecycleStore

BRAND = Brand(id="monster", name="Monster Casino", domain="monstercasino.co.uk")


class FakeSearchProvider(BaseSearchProvider):
    """Returns scripted pages keyed by offset; exceptions are raised."""

    name = "Fake"

    def __init__(self, pages=None):
        self.pages = pages or {}
        self.calls = []

    def search(self, query, geolocation, page_offset, timeout=None):
        self.calls.append((query, geolocation, page_offset, timeout))
        page = self.pages.get(page_offset, SerpPage())
        if isinstance(page, Exception):
            raise page
        return page


class RecordingPacer:
    def __init__(self):
        self.waits = 0

    def wait(self):
        self.waits += 1


def serp(*results, total=100):
    return SerpPage(organic_results=list(results), total_organic_results=total)


def result(url, rank=None, name="", description=""):
    return OrganicResult(url=url, name=name or url, description=description, rank=rank)


@pytest.fixture
def store():
    engine = make_engine("sqlite://")
    init_db(engine)
    return LifecycleStore(make_session_factory(engine))


@pytest.fixture
def provider():
    return FakeSearchProvider()


@pytest.fixture
def brands():
    return BrandDirectory([BRAND, Brand(id="nodomain", name="No Domain")])


@pytest.fixture
def service(store, brands, provider):
    return ImposterService(
        store=store,
        brands=brands,
        orchestrator=ScanOrchestrator(provider, pacer=NoDelayPacer()),
        analyzer=ImpostorAnalyzer(),
        default_pages=3,
        max_pages=10,
    )


def failing_page(message="boom"):
    return ProviderError(message)

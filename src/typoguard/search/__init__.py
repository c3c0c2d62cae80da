"""Search engine providers used by the scan orchestrator."""

from typoguard.search.base import BaseSearchProvider
from typoguard.search.zyte import ZyteSearchProvider

__all__ = ["BaseSearchProvider", "ZyteSearchProvider"]

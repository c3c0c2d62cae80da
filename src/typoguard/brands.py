"""Brand directory lookups used by scans."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from typoguard.errors import NotFound


@dataclass(frozen=True)
class Brand:
    """A protected brand: its display name and its own domain."""

    id: str
    name: str
    domain: str = ""


class BrandDirectory:
    """Read-only brand lookup by id.

    The default implementation is backed by the ``brands`` list in the
    configuration; other directories only need to provide ``get()``.
    """

    def __init__(self, brands: Iterable[Brand] = ()) -> None:
        self._brands = {b.id: b for b in brands}

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "BrandDirectory":
        entries = config.get("brands") or []
        return cls(
            Brand(id=str(e["id"]), name=e["name"], domain=e.get("domain") or "")
            for e in entries
        )

    def add(self, brand: Brand) -> None:
        self._brands[brand.id] = brand

    def get(self, brand_id: str) -> Brand:
        try:
            return self._brands[brand_id]
        except KeyError:
            raise NotFound("Brand", brand_id) from None

    def all(self) -> list[Brand]:
        return list(self._brands.values())

"""Extraction strategy interface.

The session controller puts a rendered page in front of an extractor; all
markup-dependent parsing lives behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from ozon_scout.extractors.schemas import Category, Product, SearchResult


class ExtractionStrategy(ABC):
    """Turns a rendered page into best-effort records."""

    @abstractmethod
    async def search_results(self, page: Any, limit: int) -> list[SearchResult]:
        """Return up to *limit* unique product tiles from a search listing."""

    @abstractmethod
    async def product(self, page: Any, url: str) -> Product | None:
        """Return the product on the current page, or None if none is recognisable."""

    @abstractmethod
    async def categories(self, page: Any) -> list[Category]:
        ...

    @abstractmethod
    async def filter_labels(self, page: Any) -> list[str]:
        ...

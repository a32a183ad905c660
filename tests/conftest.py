from __future__ import annotations

import os
from typing import Any

import pytest

os.environ.setdefault("OZON_LOG_TO_FILE", "0")
os.environ.setdefault("OZON_MOUSE_JITTER", "0")

from ozon_scout.errors import BrowserLaunchError  # noqa: E402
from ozon_scout.extractors.base import ExtractionStrategy  # noqa: E402
from ozon_scout.extractors.schemas import Category, Product, SearchResult  # noqa: E402
from ozon_scout.retailers.ozon import extract_product_id  # noqa: E402
from ozon_scout.session import NavigationResult  # noqa: E402


async def no_sleep(_seconds: float) -> None:
    return None


class FakeSession:
    """Stands in for ``BrowserSession``; navigation outcomes come from the factory script."""

    def __init__(self, factory: "ScriptedSessionFactory") -> None:
        self.factory = factory
        self.page: Any = None
        self.opened = False
        self.closed = False
        self.warmups = 0
        self.navigations: list[str] = []

    @property
    def is_open(self) -> bool:
        return self.opened and not self.closed

    async def open(self) -> None:
        if self.factory.launch_error is not None:
            raise self.factory.launch_error
        self.opened = True
        self.page = object()
        self.factory.max_live = max(self.factory.max_live, self.factory.live)

    async def warm_up(self, home_url: str | None = None) -> NavigationResult:
        self.warmups += 1
        self.factory.warmups += 1
        if self.factory.warmup_errors:
            raise self.factory.warmup_errors.pop(0)
        return NavigationResult(final_url=home_url or "", title="OZON", blocked=False)

    async def navigate(self, url: str, *, settle_ms: int | None = None) -> NavigationResult:
        self.navigations.append(url)
        outcome = self.factory.script.pop(0) if self.factory.script else "ok"
        if isinstance(outcome, BaseException):
            raise outcome
        if outcome == "blocked":
            return NavigationResult(final_url=url, title="Доступ ограничен", blocked=True)
        return NavigationResult(final_url=url, title="OZON", blocked=False)

    async def close(self) -> None:
        self.closed = True
        self.page = None


class ScriptedSessionFactory:
    """Session factory whose navigations follow *script*: ``"ok"``, ``"blocked"`` or an exception."""

    def __init__(
        self,
        script: list[Any] | None = None,
        *,
        launch_error: BaseException | None = None,
        warmup_errors: list[BaseException] | None = None,
    ) -> None:
        self.script = list(script or [])
        self.launch_error = launch_error
        self.warmup_errors = list(warmup_errors or [])
        self.sessions: list[FakeSession] = []
        self.warmups = 0
        self.max_live = 0

    def __call__(self, settings: Any) -> FakeSession:
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    @property
    def live(self) -> int:
        return sum(1 for session in self.sessions if session.is_open)


class FakeExtractor(ExtractionStrategy):
    def __init__(self, *, missing: set[str] | None = None, labels: list[str] | None = None) -> None:
        self.missing = missing or set()
        self.labels = labels or []

    async def search_results(self, page: Any, limit: int) -> list[SearchResult]:
        results = [
            SearchResult(id=str(index), url=f"https://www.ozon.ru/product/item-{index}/", name=f"Item {index}")
            for index in range(1, 6)
        ]
        return results[:limit]

    async def product(self, page: Any, url: str) -> Product | None:
        product_id = extract_product_id(url)
        if product_id is None or product_id in self.missing:
            return None
        return Product(id=product_id, url=url, title=f"Product {product_id}", price=1000)

    async def categories(self, page: Any) -> list[Category]:
        return [Category(name="Электроника", url="https://www.ozon.ru/category/elektronika-15500/")]

    async def filter_labels(self, page: Any) -> list[str]:
        return list(self.labels)


class DummyPage:
    """Minimal page double for evaluate/goto/title calls."""

    def __init__(self, *, evaluate_result: Any = None, title: str = "OZON", error: BaseException | None = None) -> None:
        self.evaluate_result = evaluate_result
        self._title = title
        self.error = error
        self.url = "about:blank"
        self.visited: list[str] = []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if self.error is not None:
            raise self.error
        return self.evaluate_result

    async def goto(self, url: str, **kwargs: Any) -> None:
        if self.error is not None:
            raise self.error
        self.visited.append(url)
        self.url = url

    async def title(self) -> str:
        return self._title


@pytest.fixture
def sleep_fn():
    return no_sleep


@pytest.fixture
def factory_cls():
    return ScriptedSessionFactory


@pytest.fixture
def extractor_cls():
    return FakeExtractor


@pytest.fixture
def dummy_page_cls():
    return DummyPage


@pytest.fixture
def launch_error():
    return BrowserLaunchError("Failed to start browser: chromium missing")

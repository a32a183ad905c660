"""Session controller: warm-up, block detection and recovery around every operation.

State machine::

    UNINITIALIZED -> WARMING -> READY -> NAVIGATING -> READY
                                              |
                                        BLOCK_DETECTED -> RECOVERING -> READY | FATAL

``close()`` returns to UNINITIALIZED from any state.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable

from playwright.async_api import Error as PlaywrightError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from ozon_scout.errors import (
    BlockedError,
    LocationError,
    NavigationError,
    NavigationTimeoutError,
    NotFoundError,
    ScraperError,
)
from ozon_scout.extractors.base import ExtractionStrategy
from ozon_scout.extractors.dom_utils import SleepFn, human_wait
from ozon_scout.extractors.ozon import OzonDomExtractor
from ozon_scout.extractors.schemas import (
    Category,
    FilterDescriptor,
    LocationResult,
    Product,
    ProductError,
    SearchResult,
    SortOption,
)
from ozon_scout.health import HealthMonitor
from ozon_scout.logging_config import get_logger
from ozon_scout.retailers.ozon import (
    SORT_LABELS,
    build_search_url,
    product_url,
    set_city,
)
from ozon_scout.session import BrowserSession, NavigationResult
from ozon_scout.settings import ClientSettings, SessionPolicy

LOGGER = get_logger(__name__)

SessionFactory = Callable[[ClientSettings], Any]


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    WARMING = "warming"
    READY = "ready"
    NAVIGATING = "navigating"
    BLOCK_DETECTED = "block_detected"
    RECOVERING = "recovering"
    FATAL = "fatal"


class SessionController:
    """Mediates every page visit for one caller.

    Not safe for concurrent use: operations share one page. Create one
    controller per concurrent task.

    With ``SessionPolicy.LONG_LIVED`` the browser survives between operations
    and the homepage warm-up is repeated only once ``warmup_ttl_s`` has
    passed. With ``SessionPolicy.PER_OPERATION`` every operation gets a brand
    new browser which is released when the operation ends, whatever the
    outcome.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        extractor: ExtractionStrategy | None = None,
        session_factory: SessionFactory | None = None,
        monitor: HealthMonitor | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep_fn: SleepFn = asyncio.sleep,
    ) -> None:
        self.settings = settings or ClientSettings()
        self.extractor = extractor or OzonDomExtractor()
        self._session_factory = session_factory or (
            lambda active: BrowserSession(active, sleep_fn=sleep_fn)
        )
        health_log = Path(self.settings.health_log) if self.settings.health_log else None
        self.monitor = monitor or HealthMonitor(log_path=health_log)
        self._clock = clock
        self._sleep = sleep_fn

        self._session: Any | None = None
        self._last_warmup: float | None = None
        self._landing: NavigationResult | None = None
        self._city: str | None = None
        self.state = SessionState.UNINITIALIZED

    @property
    def policy(self) -> SessionPolicy:
        return self.settings.policy

    # ------------------------------------------------------------------ lifecycle

    def _transition(self, state: SessionState) -> None:
        if state is not self.state:
            LOGGER.debug("Session state %s -> %s", self.state.value, state.value)
            self.state = state

    async def _discard_session(self) -> None:
        session, self._session = self._session, None
        self._last_warmup = None
        self._landing = None
        if session is not None:
            await session.close()

    async def _release(self) -> None:
        await self._discard_session()
        self._transition(SessionState.UNINITIALIZED)

    async def close(self) -> None:
        """Release the browser. Safe to call repeatedly or before any operation."""

        await self._release()

    async def __aenter__(self) -> "SessionController":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[None]:
        LOGGER.info("Operation %s started (policy=%s)", name, self.policy.value)
        try:
            yield
        finally:
            if self.policy is SessionPolicy.PER_OPERATION:
                await self._release()

    def _warmup_expired(self) -> bool:
        if self._last_warmup is None:
            return True
        return self._clock() - self._last_warmup >= self.settings.warmup_ttl_s

    def _needs_fresh_session(self) -> bool:
        return (
            self.policy is SessionPolicy.PER_OPERATION
            or self._session is None
            or not self._session.is_open
            or self.state is SessionState.FATAL
        )

    async def _warm_up(self, *, fresh: bool, reason: str) -> None:
        self._transition(SessionState.WARMING)
        if fresh or self._session is None:
            # Never more than one browser per controller.
            await self._discard_session()
            self._session = self._session_factory(self.settings)
            await self._session.open()
            self.monitor.record_session_restart(reason=reason)

        LOGGER.info("Warming up session (%s)", reason)
        result = await self._session.warm_up(self.settings.home_url)
        self._last_warmup = self._clock()
        self._landing = result
        if result.blocked:
            LOGGER.warning("Homepage shows block signature during warm-up: %s", result.title)

        if fresh and self._city:
            await self._apply_city(self._city)
        self._transition(SessionState.READY)

    async def _ensure_ready(self) -> None:
        if self._needs_fresh_session():
            await self._warm_up(fresh=True, reason="new session")
        elif self._warmup_expired():
            await self._warm_up(fresh=False, reason="warm-up window elapsed")
        else:
            LOGGER.debug("Reusing warm session")

    # ----------------------------------------------------------------- navigation

    async def _navigate(self, url: str) -> NavigationResult:
        self._transition(SessionState.NAVIGATING)
        landing, self._landing = self._landing, None
        if landing is not None and url == self.settings.home_url:
            # The page already sits on the homepage it was just warmed on.
            result = landing
        else:
            result = await self._session.navigate(url, settle_ms=self.settings.target_settle_ms)
        if result.blocked:
            self._transition(SessionState.BLOCK_DETECTED)
            self.monitor.record_block(url=url, title=result.title)
            LOGGER.warning("Block signature detected url=%s title=%s", url, result.title)
            raise BlockedError(url=url, detail=result.title)
        self.monitor.record_success(url=url)
        self._transition(SessionState.READY)
        return result

    async def _visit(self, url: str) -> NavigationResult:
        """Navigate to *url* through the warm-up/recovery protocol."""

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.block_retries + 1),
            retry=retry_if_exception_type(BlockedError),
            reraise=True,
        )
        try:
            await self._ensure_ready()
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        self._transition(SessionState.RECOVERING)
                        await self._warm_up(fresh=True, reason="block recovery")
                    result = await self._navigate(url)
        except NavigationTimeoutError as exc:
            self.monitor.record_timeout(url=url, reason=str(exc))
            await self._fail()
            raise
        except (BlockedError, NavigationError):
            await self._fail()
            raise
        return result

    async def _fail(self) -> None:
        self._transition(SessionState.FATAL)
        await self._discard_session()

    @property
    def page(self) -> Any:
        return self._session.page if self._session is not None else None

    # ----------------------------------------------------------------- operations

    async def search(
        self,
        query: str,
        *,
        sort: str = "popular",
        page: int = 1,
        price_min: int | None = None,
        price_max: int | None = None,
        limit: int = 20,
    ) -> list[SearchResult]:
        """Search products.

        A page that stays blocked after recovery yields ``[]`` under the
        per-operation policy and raises ``BlockedError`` under the long-lived one.
        """

        url = build_search_url(query, sort=sort, page=page, price_min=price_min, price_max=price_max)
        LOGGER.info("Searching: %s", query)

        async with self._operation("search"):
            try:
                await self._visit(url)
            except BlockedError:
                if self.policy is SessionPolicy.PER_OPERATION:
                    LOGGER.warning("Search page blocked, returning empty results query=%s", query)
                    return []
                raise

            results = await self.extractor.search_results(self.page, limit)
            LOGGER.info("Found %d products for query=%s", len(results), query)
            return results

    async def get_product_details(self, id_or_url: str) -> Product:
        """Fetch one product page. Raises BlockedError, NavigationError or NotFoundError."""

        url = product_url(id_or_url)
        LOGGER.info("Getting product: %s", url)

        async with self._operation("product"):
            result = await self._visit(url)
            landing = result.final_url or url
            product = await self.extractor.product(self.page, landing)
            if product is None and landing != url:
                product = await self.extractor.product(self.page, url)
            if product is None:
                raise NotFoundError(url=landing, detail=result.title or None)
            LOGGER.info("Got product: %s", product.title)
            return product

    async def get_products_list(self, ids: Iterable[str]) -> list[Product | ProductError]:
        """Fetch several products; a failing item becomes a ``ProductError`` entry."""

        results: list[Product | ProductError] = []
        pending = [str(item) for item in ids]
        for index, product_id in enumerate(pending):
            if index:
                await self._pace()
            try:
                results.append(await self.get_product_details(product_id))
            except (ScraperError, PlaywrightError) as exc:
                LOGGER.warning("Product %s failed: %s", product_id, exc)
                results.append(ProductError(id=product_id, error=str(exc)))
        return results

    async def _pace(self) -> None:
        await human_wait(
            self.settings.pacing_min_ms,
            self.settings.pacing_max_ms,
            sleep_fn=self._sleep,
        )
        extra = self.monitor.recommended_extra_delay()
        if extra:
            LOGGER.info("Health is %s; pausing an extra %.0fs", self.monitor.state.value, extra)
            await self._sleep(extra)

    async def _apply_city(self, city: str) -> LocationResult:
        try:
            label = await set_city(self.page, city, sleep_fn=self._sleep)
        except (LocationError, PlaywrightError) as exc:
            LOGGER.warning("Could not set location city=%s: %s", city, exc)
            return LocationResult(success=False, city=city, error=str(exc))
        return LocationResult(success=True, city=label or city)

    async def set_location(self, city: str) -> LocationResult:
        """Choose the delivery city. Never raises for page-level failures."""

        LOGGER.info("Set location requested: %s", city)
        async with self._operation("location"):
            try:
                await self._ensure_ready()
            except ScraperError as exc:
                LOGGER.warning("Location not applied, session unavailable: %s", exc)
                if isinstance(exc, NavigationTimeoutError):
                    self.monitor.record_timeout(url=self.settings.home_url, reason=str(exc))
                await self._fail()
                return LocationResult(success=False, city=city, error=str(exc))

            outcome = await self._apply_city(city)
            if outcome.success:
                self._city = city
            return outcome

    async def get_filters(self, query: str) -> FilterDescriptor:
        """Return the sort catalog plus whatever filter labels the listing shows."""

        descriptor = FilterDescriptor(
            query=query,
            sort_options=[SortOption(value=key, name=label) for key, label in SORT_LABELS.items()],
            price_filter=True,
        )

        async with self._operation("filters"):
            try:
                await self._visit(build_search_url(query))
            except (BlockedError, NavigationError) as exc:
                LOGGER.warning("Filter labels unavailable query=%s: %s", query, exc)
                return descriptor
            labels = await self.extractor.filter_labels(self.page)

        return descriptor.model_copy(update={"labels": labels})

    async def get_categories(self) -> list[Category]:
        async with self._operation("categories"):
            await self._visit(self.settings.home_url)
            categories = await self.extractor.categories(self.page)
            LOGGER.info("Found %d categories", len(categories))
            return categories

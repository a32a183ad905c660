"""Ozon site constants and URL helpers."""

from __future__ import annotations

import asyncio
import re
from typing import Any
from urllib.parse import quote, urljoin, urlparse, urlunparse

from playwright.async_api import Error as PlaywrightError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random_exponential

import ozon_scout.selectors as selectors
from ozon_scout.errors import LocationError
from ozon_scout.extractors.dom_utils import SleepFn, human_wait, inner_text_safe
from ozon_scout.logging_config import get_logger

LOGGER = get_logger(__name__)

BASE_URL = "https://www.ozon.ru"

# CLI/API sort key -> value of the ``sorting`` query parameter.
SORT_MAP: dict[str, str] = {
    "popular": "score",
    "price": "price",
    "price_desc": "price_desc",
    "new": "new",
    "rating": "rating",
    "discount": "discount",
}

SORT_LABELS: dict[str, str] = {
    "popular": "По популярности",
    "price": "По цене (возрастание)",
    "price_desc": "По цене (убывание)",
    "new": "По новизне",
    "rating": "По рейтингу",
    "discount": "По скидке",
}

PRICE_MAX_SENTINEL = 9_999_999

# Characters encodeURIComponent leaves untouched.
_QUERY_SAFE = "-_.!~*'()"

_PRODUCT_ID_PATTERNS = (
    re.compile(r"/product/(?:[^/?#]*-)?(\d+)(?:[/?#]|$)"),
    re.compile(r"-(\d+)(?:[/?#]|$)"),
)


def extract_product_id(url: str | None) -> str | None:
    """Return the numeric product id embedded in an Ozon product URL."""

    if not url:
        return None
    for pattern in _PRODUCT_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def absolute_url(href: str, *, strip_query: bool = False) -> str:
    url = urljoin(f"{BASE_URL}/", href)
    if strip_query:
        parsed = urlparse(url)
        url = urlunparse(parsed._replace(query="", fragment=""))
    return url


def product_url(id_or_url: str) -> str:
    """Return the page URL for a product id, passing full URLs through."""

    value = str(id_or_url).strip()
    if value.startswith("http"):
        return value
    return f"{BASE_URL}/product/{value}/"


def build_search_url(
    query: str,
    *,
    sort: str | None = "popular",
    page: int = 1,
    price_min: int | None = None,
    price_max: int | None = None,
) -> str:
    """Build the search listing URL for *query* with sorting, price and paging."""

    url = f"{BASE_URL}/search/?text={quote(query, safe=_QUERY_SAFE)}&from_global=true"

    sorting = SORT_MAP.get(sort or "")
    if sorting:
        url += f"&sorting={sorting}"

    if price_min or price_max:
        low = price_min or 0
        high = price_max or PRICE_MAX_SENTINEL
        url += f"&currency_price={low}.000%3B{high}.000"

    if page and page > 1:
        url += f"&page={page}"

    return url


async def set_city(page: Any, city: str, *, sleep_fn: SleepFn = asyncio.sleep) -> str:
    """Pick *city* in the delivery address widget and return the label it shows.

    The whole widget interaction is tried twice before ``LocationError`` is raised.
    """

    retrying = AsyncRetrying(
        stop=stop_after_attempt(2),
        wait=wait_random_exponential(multiplier=0.5, max=5),
        retry=retry_if_exception_type(LocationError),
        reraise=True,
        sleep=sleep_fn,
    )
    async for attempt in retrying:
        with attempt:
            label = await _pick_city(page, city, sleep_fn)
    return label


async def _pick_city(page: Any, city: str, sleep_fn: SleepFn) -> str:
    try:
        await page.locator(selectors.LOCATION_TRIGGER).first.click(timeout=10000)
    except PlaywrightError as exc:
        raise LocationError("Location widget not found", detail=city) from exc
    await human_wait(600, 1200, sleep_fn=sleep_fn)

    try:
        city_input = page.locator(selectors.CITY_INPUT).first
        await city_input.fill(city, timeout=10000)
    except PlaywrightError as exc:
        raise LocationError("City input not found", detail=city) from exc
    await human_wait(900, 1600, sleep_fn=sleep_fn)

    try:
        suggestion = page.locator(selectors.CITY_SUGGESTION).filter(has_text=city).first
        await suggestion.click(timeout=10000)
    except PlaywrightError as exc:
        raise LocationError("City suggestion not offered", detail=city) from exc
    await human_wait(1400, 2200, obey_policy=False, sleep_fn=sleep_fn)

    badge = await inner_text_safe(page.locator(selectors.LOCATION_TRIGGER).first)
    if badge and city.lower() not in badge.lower():
        LOGGER.warning("Location badge did not confirm city=%s badge=%s", city, badge)
    LOGGER.info("Location set city=%s", city)
    return badge or city

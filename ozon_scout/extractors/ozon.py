"""DOM extraction strategy for Ozon pages."""

from __future__ import annotations

import re
from typing import Any

import ozon_scout.selectors as selectors
from ozon_scout.extractors.base import ExtractionStrategy
from ozon_scout.extractors.dom_utils import safe_evaluate
from ozon_scout.extractors.schemas import (
    Category,
    Characteristic,
    Product,
    SearchResult,
    compute_discount,
    format_price_rub,
    parse_discount,
    parse_price,
    parse_prices,
    parse_rating,
    parse_reviews_count,
)
from ozon_scout.logging_config import get_logger
from ozon_scout.retailers.ozon import absolute_url, extract_product_id

LOGGER = get_logger(__name__)

MAX_RAW_TILES = 400
MAX_FILTER_LABELS = 50

_BARE_NUMBER = re.compile(r"^-?\d+%?$")

SEARCH_TILES_SCRIPT = """
({ linkSelector, containers, max }) => {
  const tiles = [];
  for (const link of document.querySelectorAll(linkSelector)) {
    if (tiles.length >= max) break;
    const href = link.getAttribute('href');
    if (!href) continue;
    let container = null;
    for (const selector of containers) {
      container = link.closest(selector);
      if (container) break;
    }
    container = container || link.parentElement?.parentElement?.parentElement;
    if (!container) continue;
    const img = container.querySelector('img');
    tiles.push({ href, text: container.innerText || '', image: img ? img.src : null });
  }
  return tiles;
}
"""

PRODUCT_SCRIPT = """
(sel) => {
  const text = (selector) => {
    const el = document.querySelector(selector);
    return el ? (el.innerText || '').trim() : null;
  };
  const images = [];
  for (const img of document.querySelectorAll(sel.image)) {
    if (img.src) images.push(img.src);
    if (images.length >= 30) break;
  }
  const characteristics = [];
  const block = document.querySelector(sel.characteristics);
  if (block) {
    for (const dt of block.querySelectorAll('dt')) {
      const dd = dt.nextElementSibling;
      characteristics.push({
        name: (dt.innerText || '').trim(),
        value: dd ? (dd.innerText || '').trim() : '',
      });
    }
  }
  const body = document.body ? (document.body.innerText || '').toLowerCase() : '';
  return {
    title: text(sel.title),
    priceText: text(sel.price),
    reviewText: text(sel.review),
    description: text(sel.description),
    sellerText: text(sel.seller),
    images,
    characteristics,
    outOfStock: sel.outOfStock.some((marker) => body.includes(marker)),
  };
}
"""

CATEGORIES_SCRIPT = """
(selector) => Array.from(document.querySelectorAll(selector)).map((link) => ({
  href: link.getAttribute('href'),
  text: (link.innerText || '').trim(),
}))
"""

FILTERS_SCRIPT = """
(selector) => Array.from(document.querySelectorAll(selector)).map((el) => el.innerText || '')
"""


def _tile_name(lines: list[str]) -> str | None:
    for line in lines:
        if "₽" in line or _BARE_NUMBER.match(line):
            continue
        if 15 < len(line) < 300:
            return line
    return None


def _tile_price(lines: list[str]) -> int | None:
    for line in lines:
        if "₽" in line:
            return parse_price(line)
    return None


def parse_search_tile(raw: dict[str, Any]) -> SearchResult | None:
    """Convert one raw tile payload into a search result, or None when it has no id."""

    href = raw.get("href")
    product_id = extract_product_id(href)
    if not href or not product_id:
        return None

    lines = [line.strip() for line in (raw.get("text") or "").split("\n") if line.strip()]
    price = _tile_price(lines)

    return SearchResult(
        id=product_id,
        url=absolute_url(href, strip_query=True),
        name=_tile_name(lines) or f"Product {product_id}",
        price=price,
        price_formatted=format_price_rub(price),
        image=raw.get("image") or None,
        rating=parse_rating(raw.get("text"), require_marker=True),
    )


def parse_product_payload(raw: dict[str, Any], url: str) -> Product | None:
    """Convert the product page payload into a ``Product``.

    Returns None when either the product id (taken from *url*) or the page
    title is missing.
    """

    product_id = extract_product_id(url)
    title = (raw.get("title") or "").strip()
    if not product_id or not title:
        return None

    price_text = raw.get("priceText")
    amounts = parse_prices(price_text)
    price = amounts[0] if amounts else parse_price(price_text)
    old_price = next((amount for amount in amounts[1:] if price and amount > price), None)
    discount = parse_discount(price_text) or compute_discount(price, old_price)

    review_text = raw.get("reviewText")
    seller_text = (raw.get("sellerText") or "").strip()

    characteristics = [
        Characteristic(name=entry["name"], value=entry.get("value") or "")
        for entry in raw.get("characteristics") or []
        if isinstance(entry, dict) and entry.get("name")
    ]

    return Product(
        id=product_id,
        url=url,
        title=title,
        price=price,
        old_price=old_price,
        discount=discount,
        rating=parse_rating(review_text),
        reviews_count=parse_reviews_count(review_text),
        images=raw.get("images") or [],
        characteristics=characteristics,
        description=raw.get("description"),
        seller=seller_text.split("\n")[0].strip() or None,
        in_stock=not raw.get("outOfStock"),
    )


def parse_filter_labels(blocks: list[str]) -> list[str]:
    labels: list[str] = []
    for block in blocks:
        for line in (block or "").split("\n"):
            label = line.strip()
            if not 2 <= len(label) <= 60:
                continue
            if "₽" in label or _BARE_NUMBER.match(label) or label in labels:
                continue
            labels.append(label)
            if len(labels) >= MAX_FILTER_LABELS:
                return labels
    return labels


class OzonDomExtractor(ExtractionStrategy):
    """Scrapes Ozon listing, product and home pages through in-page scripts."""

    async def search_results(self, page: Any, limit: int) -> list[SearchResult]:
        tiles = await safe_evaluate(
            page,
            SEARCH_TILES_SCRIPT,
            {
                "linkSelector": selectors.PRODUCT_LINK,
                "containers": list(selectors.TILE_CONTAINERS),
                "max": MAX_RAW_TILES,
            },
        )

        results: list[SearchResult] = []
        seen: set[str] = set()
        for raw in tiles or []:
            if len(results) >= limit:
                break
            try:
                result = parse_search_tile(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                LOGGER.debug("Skipping unparsable tile: %s", exc)
                continue
            if result is None or result.id in seen:
                continue
            seen.add(result.id)
            results.append(result)

        LOGGER.info("Extracted %d search results from %d tiles", len(results), len(tiles or []))
        return results

    async def product(self, page: Any, url: str) -> Product | None:
        raw = await safe_evaluate(
            page,
            PRODUCT_SCRIPT,
            {
                "title": selectors.PRODUCT_TITLE,
                "price": selectors.PRICE_WIDGET,
                "review": selectors.REVIEW_WIDGET,
                "description": selectors.DESCRIPTION_WIDGET,
                "seller": selectors.SELLER_WIDGET,
                "characteristics": selectors.CHARACTERISTICS_WIDGET,
                "image": selectors.PRODUCT_IMAGE,
                "outOfStock": list(selectors.OUT_OF_STOCK_MARKERS),
            },
        )
        if not isinstance(raw, dict):
            return None
        try:
            return parse_product_payload(raw, url)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            LOGGER.warning("Product payload could not be parsed url=%s: %s", url, exc)
            return None

    async def categories(self, page: Any) -> list[Category]:
        links = await safe_evaluate(page, CATEGORIES_SCRIPT, selectors.CATEGORY_LINK)

        categories: list[Category] = []
        seen: set[str] = set()
        for link in links or []:
            href = (link or {}).get("href")
            name = ((link or {}).get("text") or "").strip()
            if not href or href in seen or not 1 < len(name) < 100:
                continue
            seen.add(href)
            categories.append(Category(name=name, url=absolute_url(href)))
        return categories

    async def filter_labels(self, page: Any) -> list[str]:
        blocks = await safe_evaluate(page, FILTERS_SCRIPT, selectors.FILTER_WIDGETS)
        return parse_filter_labels(blocks or [])

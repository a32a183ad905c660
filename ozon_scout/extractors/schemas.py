"""Data validation schemas and value parsers for extracted records."""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_IMAGES = 10
MAX_DESCRIPTION_CHARS = 2000

# Digit groups on Ozon are separated by regular, no-break or thin spaces.
_GROUPED_NUMBER = r"\d[\d \u00a0\u2009\u202f]*"
_RUB_PATTERN = re.compile(rf"({_GROUPED_NUMBER})\s*₽")
_LOOSE_NUMBER_PATTERN = re.compile(_GROUPED_NUMBER)
_RATING_PATTERN = re.compile(r"(\d[,.]\d)")
_TILE_RATING_PATTERN = re.compile(r"(\d[,.]\d)\s*[★⭐•]")
_REVIEWS_PATTERN = re.compile(rf"({_GROUPED_NUMBER})\s*(?:отзыв|review)", re.I)
_DISCOUNT_PATTERN = re.compile(r"[-−](\d{1,2})\s*%")
_SPACES = re.compile(r"[ \u00a0\u2009\u202f]")


def _to_int(number: str) -> int | None:
    digits = _SPACES.sub("", number).strip()
    if not digits:
        return None
    try:
        value = int(digits)
    except ValueError:
        return None
    if value <= 0 or value >= 100_000_000:
        return None
    return value


def parse_price(text: str | None) -> int | None:
    """Parse the first rouble amount in *text*.

    Amounts written as ``12 345 ₽`` win; when the text mentions ``₽`` but the
    sign is detached from the number, the first number in the text is used.
    Returns ``None`` when nothing parsable is present.
    """

    if not text:
        return None

    match = _RUB_PATTERN.search(text)
    if match:
        return _to_int(match.group(1))

    if "₽" in text:
        loose = _LOOSE_NUMBER_PATTERN.search(text)
        if loose:
            return _to_int(loose.group(0))

    return None


def parse_prices(text: str | None) -> list[int]:
    """Return every rouble amount in *text*, in order of appearance."""

    if not text:
        return []
    values = (_to_int(match.group(1)) for match in _RUB_PATTERN.finditer(text))
    return [value for value in values if value is not None]


def parse_rating(text: str | None, *, require_marker: bool = False) -> float | None:
    if not text:
        return None
    pattern = _TILE_RATING_PATTERN if require_marker else _RATING_PATTERN
    match = pattern.search(text)
    if not match:
        return None
    try:
        value = float(match.group(1).replace(",", "."))
    except ValueError:
        return None
    return value if 0 < value <= 5 else None


def parse_reviews_count(text: str | None) -> int | None:
    if not text:
        return None
    match = _REVIEWS_PATTERN.search(text)
    if not match:
        return None
    return _to_int(match.group(1))


def parse_discount(text: str | None) -> int | None:
    if not text:
        return None
    match = _DISCOUNT_PATTERN.search(text)
    return int(match.group(1)) if match else None


def compute_discount(price: int | None, old_price: int | None) -> int | None:
    """Compute the whole-percent discount between ``price`` and ``old_price``."""

    if price is None or old_price is None:
        return None

    if price <= 0 or old_price <= 0 or price >= old_price:
        return None

    return round((old_price - price) * 100 / old_price)


def format_price_rub(price: int | None) -> str | None:
    """Format *price* the way ru-RU locales do: ``12 345 ₽`` with no-break spaces."""

    if price is None:
        return None
    return f"{price:,}".replace(",", "\u00a0") + "\u00a0\u20bd"


class SearchResult(BaseModel):
    """One product tile from a search listing."""

    model_config = ConfigDict(extra="ignore")

    id: str
    url: str
    name: str
    price: int | None = None
    price_formatted: str | None = None
    image: str | None = None
    rating: float | None = None


class Characteristic(BaseModel):
    name: str
    value: str


class Product(BaseModel):
    """Product page details; every field except ``id``/``url``/``title`` is optional."""

    model_config = ConfigDict(extra="ignore")

    id: str
    url: str
    title: str
    price: int | None = None
    old_price: int | None = None
    discount: int | None = None
    rating: float | None = None
    reviews_count: int | None = None
    images: list[str] = Field(default_factory=list)
    characteristics: list[Characteristic] = Field(default_factory=list)
    description: str | None = None
    seller: str | None = None
    in_stock: bool = True

    @field_validator("images", mode="before")
    @classmethod
    def _unique_images(cls, value: Any) -> list[str]:
        unique: list[str] = []
        for entry in value or []:
            if isinstance(entry, str) and entry and entry not in unique:
                unique.append(entry)
            if len(unique) >= MAX_IMAGES:
                break
        return unique

    @field_validator("description", mode="before")
    @classmethod
    def _clip_description(cls, value: Any) -> str | None:
        if not value:
            return None
        text = str(value).strip()
        return text[:MAX_DESCRIPTION_CHARS] or None


class ProductError(BaseModel):
    """Placeholder recorded for a batch item that could not be fetched."""

    id: str
    error: str


class Category(BaseModel):
    name: str
    url: str


class SortOption(BaseModel):
    value: str
    name: str


class FilterDescriptor(BaseModel):
    query: str
    sort_options: list[SortOption]
    price_filter: bool = True
    labels: list[str] = Field(default_factory=list)


class LocationResult(BaseModel):
    success: bool
    city: str
    error: str | None = None

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

import ozon_scout.selectors as selectors
from ozon_scout.errors import LocationError
from ozon_scout.retailers.ozon import set_city


class FakeLocator:
    def __init__(self, page, selector):
        self.page = page
        self.selector = selector

    @property
    def first(self):
        return self

    def filter(self, has_text=None):
        return self

    async def click(self, timeout=None):
        self.page.clicks.append(self.selector)
        if self.selector in self.page.failing:
            raise PlaywrightError(f"Timeout {timeout}ms exceeded waiting for {self.selector}")

    async def fill(self, value, timeout=None):
        self.page.filled.append(value)

    async def inner_text(self, timeout=None):
        return self.page.badge


class FakeLocationPage:
    def __init__(self, *, failing=(), badge=""):
        self.failing = set(failing)
        self.badge = badge
        self.clicks = []
        self.filled = []

    def locator(self, selector):
        return FakeLocator(self, selector)


def _recording_sleep():
    calls = []

    async def sleep(seconds):
        calls.append(seconds)

    return calls, sleep


def test_set_city_picks_suggestion_and_returns_badge():
    page = FakeLocationPage(badge=" Казань ")
    sleeps, sleep = _recording_sleep()

    label = asyncio.run(set_city(page, "Казань", sleep_fn=sleep))

    assert label == "Казань"
    assert page.filled == ["Казань"]
    assert page.clicks == [selectors.LOCATION_TRIGGER, selectors.CITY_SUGGESTION]
    assert len(sleeps) == 3


def test_set_city_retries_once_through_injected_sleep():
    page = FakeLocationPage(failing={selectors.LOCATION_TRIGGER})
    sleeps, sleep = _recording_sleep()

    with pytest.raises(LocationError) as excinfo:
        asyncio.run(set_city(page, "Казань", sleep_fn=sleep))

    assert "Location widget not found" in str(excinfo.value)
    assert page.clicks == [selectors.LOCATION_TRIGGER, selectors.LOCATION_TRIGGER]
    # the back-off between the two attempts
    assert len(sleeps) == 1
    assert 0 <= sleeps[0] <= 5

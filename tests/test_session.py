import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

import ozon_scout.session as session_module
from ozon_scout.errors import BlockedError, BrowserLaunchError, NavigationError, NavigationTimeoutError
from ozon_scout.session import BrowserSession
from ozon_scout.settings import ClientSettings


def _session(sleep_fn, page, **settings):
    session = BrowserSession(ClientSettings(target_settle_ms=0, home_settle_ms=0, **settings), sleep_fn=sleep_fn)
    session.page = page
    return session


def test_navigate_reports_title_and_block(sleep_fn, dummy_page_cls):
    ok = asyncio.run(_session(sleep_fn, dummy_page_cls(title="OZON")).navigate("https://www.ozon.ru/search/?text=x"))
    blocked = asyncio.run(_session(sleep_fn, dummy_page_cls(title="Доступ ограничен")).navigate("https://www.ozon.ru/"))

    assert ok.final_url == "https://www.ozon.ru/search/?text=x"
    assert ok.title == "OZON"
    assert ok.blocked is False
    assert blocked.blocked is True


def test_warm_up_visits_home_url(sleep_fn, dummy_page_cls):
    page = dummy_page_cls()
    session = _session(sleep_fn, page, home_url="https://www.ozon.ru/")

    result = asyncio.run(session.warm_up())

    assert page.visited == ["https://www.ozon.ru/"]
    assert result.blocked is False


def test_navigate_translates_playwright_errors(sleep_fn, dummy_page_cls):
    timeout_page = dummy_page_cls(error=PlaywrightTimeoutError("Timeout 90000ms exceeded."))
    broken_page = dummy_page_cls(error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED\nCall log: ..."))

    with pytest.raises(NavigationTimeoutError) as timeout_info:
        asyncio.run(_session(sleep_fn, timeout_page).navigate("https://www.ozon.ru/product/1/"))
    with pytest.raises(NavigationError) as error_info:
        asyncio.run(_session(sleep_fn, broken_page).navigate("https://www.ozon.ru/product/1/"))

    assert "90000 ms" in str(timeout_info.value)
    assert error_info.value.detail == "net::ERR_NAME_NOT_RESOLVED"
    assert not isinstance(error_info.value, NavigationTimeoutError)


def test_navigate_requires_open_session(sleep_fn):
    session = BrowserSession(ClientSettings(), sleep_fn=sleep_fn)

    assert session.is_open is False
    with pytest.raises(NavigationError):
        asyncio.run(session.navigate("https://www.ozon.ru/"))


def test_close_is_idempotent_and_ignores_its_own_page_close(sleep_fn, dummy_page_cls):
    session = _session(sleep_fn, dummy_page_cls())
    assert session.is_open is True

    asyncio.run(session.close())
    asyncio.run(session.close())
    session._mark_crash("page_close")

    assert session.is_open is False
    assert session._crash_reason is None


def test_crash_marks_session_inactive(sleep_fn, dummy_page_cls):
    session = _session(sleep_fn, dummy_page_cls())

    session._mark_crash("crash")

    assert session.is_open is False
    with pytest.raises(NavigationError):
        asyncio.run(session.navigate("https://www.ozon.ru/"))


def test_blocked_error_message_includes_context():
    error = BlockedError(url="https://www.ozon.ru/", detail="Доступ ограничен")

    assert str(error) == "Page blocked by antibot. (url=https://www.ozon.ru/, detail=Доступ ограничен)"
    assert str(BlockedError()) == "Page blocked by antibot."


class StubChromium:
    def __init__(self):
        self.launches = 0

    async def launch(self, **kwargs):
        self.launches += 1
        raise PlaywrightError("Executable doesn't exist at /ms-playwright/chromium/chrome")


class StubPlaywright:
    def __init__(self):
        self.chromium = StubChromium()
        self.stops = 0

    async def stop(self):
        self.stops += 1


class StubPlaywrightManager:
    def __init__(self, playwright):
        self.playwright = playwright

    async def start(self):
        return self.playwright


def test_open_releases_playwright_when_launch_fails(monkeypatch, sleep_fn):
    playwright = StubPlaywright()
    monkeypatch.setattr(session_module, "async_playwright", lambda: StubPlaywrightManager(playwright))
    session = BrowserSession(ClientSettings(stealth=False), sleep_fn=sleep_fn)

    with pytest.raises(BrowserLaunchError) as excinfo:
        asyncio.run(session.open())

    assert "Executable doesn't exist" in str(excinfo.value)
    assert playwright.chromium.launches == 1
    assert playwright.stops == 1
    assert session.is_open is False
    assert session.page is None

    asyncio.run(session.close())
    assert playwright.stops == 1

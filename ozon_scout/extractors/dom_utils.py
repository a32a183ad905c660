"""Pacing, pointer and DOM-read helpers shared by the session and extractors."""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable

from playwright.async_api import Error as PlaywrightError

from ozon_scout.playwright_env import apply_wait_policy, mouse_jitter_enabled

SleepFn = Callable[[float], Awaitable[Any]]


async def human_wait(
    min_ms: int = 350,
    max_ms: int = 900,
    *,
    obey_policy: bool = True,
    sleep_fn: SleepFn = asyncio.sleep,
) -> None:
    """Pause for a random number of milliseconds in ``[min_ms, max_ms]``.

    With ``obey_policy`` the bounds are scaled by ``OZON_WAIT_MULTIPLIER``.
    """

    low = max(min_ms, 0)
    high = max(max_ms, low)
    if obey_policy:
        low, high = apply_wait_policy(low, high)
    await sleep_fn(random.uniform(low, high) / 1000)


async def inner_text_safe(locator: Any, timeout: int = 3000) -> str | None:
    if locator is None:
        return None
    try:
        text = await locator.inner_text(timeout=timeout)
    except PlaywrightError:
        return None
    return text.strip() if text is not None else None


async def safe_evaluate(page: Any, script: str, arg: Any = None) -> Any:
    """Evaluate *script* on the page, swallowing transient browser errors."""

    try:
        if arg is None:
            return await page.evaluate(script)
        return await page.evaluate(script, arg)
    except PlaywrightError:
        return None


async def jitter_mouse(page: Any, *, sleep_fn: SleepFn = asyncio.sleep) -> None:
    """Randomise cursor movement to mimic human browsing."""

    if not mouse_jitter_enabled():
        return

    size = await safe_evaluate(page, "() => [window.innerWidth || 1280, window.innerHeight || 800]")
    width, height = size if isinstance(size, list) and len(size) == 2 else (1280, 800)

    try:
        for _ in range(random.randint(2, 4)):
            target_x = random.randint(0, int(max(width, 1)))
            target_y = random.randint(0, int(max(height, 1)))
            steps = random.randint(3, 7)
            await page.mouse.move(target_x, target_y, steps=steps)
            await human_wait(120, 320, obey_policy=False, sleep_fn=sleep_fn)
    except PlaywrightError:
        # Non-fatal; simply skip cursor jitter if Playwright rejects the move.
        return


async def scroll_page(
    page: Any,
    *,
    steps: int = 3,
    sleep_fn: SleepFn = asyncio.sleep,
) -> None:
    """Scroll down in uneven increments and drift back up a little."""

    for _ in range(max(steps, 0)):
        delta = random.randint(250, 700)
        if await safe_evaluate(page, "(dy) => { window.scrollBy(0, dy); return true; }", delta) is None:
            return
        await human_wait(200, 600, sleep_fn=sleep_fn)

    await safe_evaluate(page, "(dy) => { window.scrollBy(0, -dy); return true; }", random.randint(100, 400))

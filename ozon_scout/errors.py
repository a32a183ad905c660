"""Custom exception types for ozon-scout."""

from __future__ import annotations

from typing import Optional


class ScraperError(Exception):
    """Base class for failures surfaced by the session controller."""

    default_message = "Scraper operation failed."

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        url: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.message = message or self.default_message
        self.url = url
        self.detail = detail
        super().__init__(self.message)

    def __str__(self) -> str:
        context_parts: list[str] = []
        if self.url:
            context_parts.append(f"url={self.url}")
        if self.detail:
            context_parts.append(f"detail={self.detail}")
        context = ", ".join(context_parts)
        return f"{self.message} ({context})" if context else self.message


class BlockedError(ScraperError):
    """Raised when a block signature is still present after recovery."""

    default_message = "Page blocked by antibot."


class NavigationError(ScraperError):
    """Raised when the browser fails to load a page for a non-timeout reason."""

    default_message = "Navigation failed."


class NavigationTimeoutError(NavigationError):
    """Raised when a navigation exceeds its time bound."""

    default_message = "Navigation timed out."


class NotFoundError(ScraperError):
    """Raised when a product page loads but carries no recognisable product."""

    default_message = "Product not found."


class LocationError(ScraperError):
    """Raised when the delivery city cannot be set through the page UI."""

    default_message = "Unable to set location."


class BrowserLaunchError(RuntimeError):
    """Raised when the browser process, context or page cannot be created.

    Not a ``ScraperError``, so batch operations let it propagate instead of
    recording it per item.
    """

"""Navigation capability used for full-page flows and logout.

In a browser this is ``window.location``; here it is an injected object
so the orchestration can run and be tested without one.
:class:`UrlNavigator` simply records where it was sent and reports a
location that can be set from a URL (for example the redirect URL a user
pastes back into the terminal). :class:`WebBrowserNavigator` additionally
opens each URL in the system browser.
"""

from __future__ import annotations

import logging
import threading
import webbrowser
from abc import ABC, abstractmethod

from authflow.models import Location

logger = logging.getLogger(__name__)


class Navigator(ABC):
    """Navigate to URLs and report the current location."""

    @abstractmethod
    def navigate(self, url: str) -> None:
        """Leave the current page for *url*."""
        ...

    @abstractmethod
    def current_location(self) -> Location:
        """Return the query and fragment of the current page."""
        ...


class UrlNavigator(Navigator):
    """A :class:`Navigator` that keeps its location in memory.

    Args:
        current_url: The URL the navigator starts on.

    Example::

        nav = UrlNavigator("https://app.example/cb?code=abc#state=xyz")
        nav.current_location()  # Location(query="code=abc", fragment="state=xyz")
    """

    def __init__(self, current_url: str = "") -> None:
        self._current_url = current_url
        self.history: list[str] = []

    @property
    def current_url(self) -> str:
        return self._current_url

    def load(self, url: str) -> None:
        """Replace the current location without recording a navigation."""
        self._current_url = url

    def navigate(self, url: str) -> None:
        self.history.append(url)
        self._current_url = url

    def current_location(self) -> Location:
        return Location.from_url(self._current_url)


class WebBrowserNavigator(UrlNavigator):
    """A :class:`UrlNavigator` that also opens every navigation in the system browser."""

    def navigate(self, url: str) -> None:
        super().navigate(url)
        logger.info("Opening browser at %s", url.split("?", 1)[0])
        # Open browser in a separate thread to avoid blocking
        threading.Thread(target=webbrowser.open, args=(url,), daemon=True).start()

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Callable

logger = logging.getLogger(__name__)

MOBILE_BREAKPOINT_PX = 768
HOME_ROUTE = "/"

ACTION_HOME = "home"
ACTION_CONTACT = "contact"
ACTION_SIDEBAR_TOGGLE = "sidebar_toggle"
ACTION_MENU_TOGGLE = "menu_toggle"

ACTION_TITLES = {
    ACTION_HOME: "الرئيسية",
    ACTION_CONTACT: "تواصل عبر واتساب",
}


def classify_viewport(width: int | float) -> str:
    return "mobile" if width < MOBILE_BREAKPOINT_PX else "desktop"


class ViewportMonitor:
    """Fan-out of viewport resize signals to subscribed widgets."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[int], None]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Callable[[int], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def resize(self, width: int) -> None:
        for listener in list(self._listeners):
            listener(width)


@dataclass(frozen=True)
class NavAction:
    id: str
    title: str
    active: bool = False
    href: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


class FloatingNavState:
    """State of the floating navigation overlay.

    Expanded/collapsed exists only in the mobile layout; the desktop layout
    always shows its actions.
    """

    def __init__(
        self,
        navigate: Callable[[str], None],
        *,
        on_toggle_sidebar: Callable[[], None] | None = None,
        is_sidebar_open: Callable[[], bool] | None = None,
        is_on_chat_page: bool = False,
        contact_url: str = "",
        location: str = HOME_ROUTE,
    ):
        self._navigate = navigate
        self._on_toggle_sidebar = on_toggle_sidebar
        self._is_sidebar_open = is_sidebar_open
        self.is_on_chat_page = is_on_chat_page
        self.contact_url = contact_url
        self.location = location
        self.is_mobile = False
        self._expanded = False
        self._unsubscribe: Callable[[], None] | None = None

    @property
    def is_sidebar_open(self) -> bool:
        return bool(self._is_sidebar_open and self._is_sidebar_open())

    @property
    def shows_sidebar_toggle(self) -> bool:
        return self.is_mobile and self.is_on_chat_page and self._on_toggle_sidebar is not None

    @property
    def is_expanded(self) -> bool:
        return self.is_mobile and self._expanded

    def attach(self, monitor: ViewportMonitor, width: int) -> None:
        self.detach()
        self.on_resize(width)
        self._unsubscribe = monitor.subscribe(self.on_resize)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def on_resize(self, width: int) -> None:
        self.is_mobile = classify_viewport(width) == "mobile"
        if not self.is_mobile:
            self._expanded = False

    def toggle(self) -> None:
        if self.is_mobile:
            self._expanded = not self._expanded

    def navigate_to(self, route: str) -> None:
        logger.info("Navigating to: %s", route)
        self._navigate(route)
        self.location = route
        if self.is_mobile:
            self._expanded = False

    def toggle_sidebar(self) -> None:
        if not self.shows_sidebar_toggle:
            return
        self._on_toggle_sidebar()
        self._expanded = False

    def actions(self) -> list[NavAction]:
        if self.is_mobile and not self.is_expanded:
            return [NavAction(ACTION_MENU_TOGGLE, "فتح القائمة")]

        items = [
            NavAction(ACTION_HOME, ACTION_TITLES[ACTION_HOME], active=self.location == HOME_ROUTE),
            NavAction(ACTION_CONTACT, ACTION_TITLES[ACTION_CONTACT], href=self.contact_url or None),
        ]
        if self.is_mobile:
            if self.shows_sidebar_toggle:
                title = "إخفاء القائمة" if self.is_sidebar_open else "عرض القائمة"
                items.append(NavAction(ACTION_SIDEBAR_TOGGLE, title, active=self.is_sidebar_open))
            items.append(NavAction(ACTION_MENU_TOGGLE, "إغلاق القائمة", active=True))
        return items


def navigation_config(contact_url: str) -> dict:
    return {
        "mobile_breakpoint_px": MOBILE_BREAKPOINT_PX,
        "home_route": HOME_ROUTE,
        "contact_url": contact_url,
        "actions": [
            {"id": ACTION_HOME, "title": ACTION_TITLES[ACTION_HOME]},
            {"id": ACTION_CONTACT, "title": ACTION_TITLES[ACTION_CONTACT], "href": contact_url},
            {"id": ACTION_SIDEBAR_TOGGLE, "mobile_only": True, "chat_page_only": True},
        ],
    }

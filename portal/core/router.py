"""
Single-page navigation engine

History models the platform's navigation stack (push, back, forward and
popstate notifications). ViewHost is the mount point that holds exactly
one view at a time together with the event listeners that view bound.
Router maps paths to view handlers and re-renders on every navigation.
"""
import logging
from typing import Any, Callable, Dict, List, NamedTuple, Optional
from urllib.parse import parse_qsl, urlsplit


logger = logging.getLogger(__name__)

ROOT_PATH = "/"


class Location(NamedTuple):
    """Current path plus query parameters (first value wins)"""
    path: str
    query: Dict[str, str]

    @classmethod
    def parse(cls, url: str) -> "Location":
        parts = urlsplit(url)
        query: Dict[str, str] = {}
        for key, value in parse_qsl(parts.query, keep_blank_values=True):
            query.setdefault(key, value)
        return cls(parts.path or ROOT_PATH, query)


class History:
    """In-process navigation history"""

    def __init__(self, url: str = ROOT_PATH):
        self.entries: List[str] = [url]
        self.index = 0
        self._listeners: List[Callable[[Location], None]] = []

    @property
    def url(self) -> str:
        return self.entries[self.index]

    @property
    def location(self) -> Location:
        return Location.parse(self.url)

    def push_state(self, url: str) -> None:
        """Add an entry without notifying listeners; drops forward entries"""
        del self.entries[self.index + 1:]
        self.entries.append(url)
        self.index += 1

    def go(self, delta: int) -> bool:
        target = self.index + delta
        if delta == 0 or target < 0 or target >= len(self.entries):
            return False
        self.index = target
        location = self.location
        for listener in list(self._listeners):
            listener(location)
        return True

    def back(self) -> bool:
        return self.go(-1)

    def forward(self) -> bool:
        return self.go(1)

    def add_listener(self, listener: Callable[[Location], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[Location], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)


class ViewHost:
    """Mount point for exactly one view"""

    def __init__(self):
        self.view = None
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

    def mount(self, view) -> None:
        """Replace the mounted view; the previous one is unmounted first"""
        if self.view is not None:
            self.view.unmount(self)
        self.view = view
        view.mount(self)

    def unmount(self) -> None:
        if self.view is not None:
            self.view.unmount(self)
            self.view = None

    def render(self) -> str:
        if self.view is None:
            return ""
        return self.view.render()

    # ==================== EVENTS ====================

    def add_listener(self, event: str, listener: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def remove_listener(self, event: str, listener: Callable[..., Any]) -> None:
        listeners = self._listeners.get(event, [])
        if listener in listeners:
            listeners.remove(listener)
        if not listeners:
            self._listeners.pop(event, None)

    def listener_count(self, event: Optional[str] = None) -> int:
        if event is not None:
            return len(self._listeners.get(event, []))
        return sum(len(listeners) for listeners in self._listeners.values())

    def dispatch(self, event: str, **payload) -> List[Any]:
        """Call every listener bound to event, returning their results"""
        return [listener(**payload) for listener in list(self._listeners.get(event, []))]


class Router:
    """Path -> handler table driving a ViewHost"""

    def __init__(self, history: History, host: ViewHost):
        self.history = history
        self.host = host
        self.routes: Dict[str, Callable[[Location], Any]] = {}
        self.current_route: Optional[str] = None
        history.add_listener(self._on_popstate)

    def add_route(self, path: str, handler: Callable[[Location], Any]) -> None:
        """Register handler for path; re-registering overwrites"""
        self.routes[path] = handler

    def navigate(self, path: str):
        """Push path onto history, then resolve and render it"""
        self.history.push_state(path)
        return self.handle_route()

    def handle_route(self):
        """
        Resolve the current location and mount the handler's view

        Unregistered paths fall back to the root handler. A route table
        without a root handler is a configuration error (KeyError).
        """
        location = self.history.location
        handler = self.routes.get(location.path) or self.routes[ROOT_PATH]
        self.current_route = location.path
        view = handler(location)
        self.host.mount(view)
        logger.debug(f"Mounted {getattr(view, 'name', view)} for {location.path}")
        return view

    def _on_popstate(self, location: Location) -> None:
        # History already moved; only re-render
        self.handle_route()

    def close(self) -> None:
        self.history.remove_listener(self._on_popstate)
        self.host.unmount()

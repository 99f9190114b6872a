"""
View Renderer and view lifecycle

Each view renders a Jinja2 template for its route. Views that need a
controller construct it on mount and tear it down (detaching every
listener they bound on the host) on unmount.
"""
import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from portal.core.dashboard import ASC, DESC, SORT_KEYS, DashboardController
from portal.core.router import History, Location, Router, ViewHost
from portal.core.upload import UploadController
from portal.models import SubmitterIdentity
from portal.state import PortalContext
from portal.utils import display_name, format_date, format_file_size, plural_people


logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

environment = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
)
environment.filters["file_size"] = format_file_size
environment.filters["date"] = format_date
environment.filters["people"] = plural_people
environment.globals["display_name"] = display_name


def render_view(name: str, **context: Any) -> str:
    """Render the template for a route name"""
    return environment.get_template(f"{name}.html").render(**context)


class View:
    """Base view: renders a template, owns its host listeners while mounted"""

    name = ""

    def __init__(self, context: PortalContext, location: Location):
        self.context = context
        self.location = location
        self.mounted = False
        self._bindings: List[Tuple[str, Callable[..., Any]]] = []

    def bind(self, host: ViewHost, event: str, listener: Callable[..., Any]) -> None:
        host.add_listener(event, listener)
        self._bindings.append((event, listener))

    def mount(self, host: ViewHost) -> None:
        self.mounted = True

    def unmount(self, host: ViewHost) -> None:
        for event, listener in self._bindings:
            host.remove_listener(event, listener)
        self._bindings = []
        self.mounted = False

    async def activate(self) -> None:
        """Async work needed before the first render"""

    def template_context(self) -> dict:
        return {}

    def render(self) -> str:
        return render_view(self.name, settings=self.context.settings, view=self, **self.template_context())


class HomeView(View):
    name = "home"


class SubmitView(View):
    """Submission form; accepts full_name, username and id query parameters"""

    name = "submit"

    def __init__(self, context: PortalContext, location: Location):
        super().__init__(context, location)
        self.identity = SubmitterIdentity(
            full_name=location.query.get("full_name", ""),
            username=location.query.get("username", ""),
            tg_id=location.query.get("id", ""),
        )
        self.controller: Optional[UploadController] = None

    def mount(self, host: ViewHost) -> None:
        super().mount(host)
        # Fresh form per mount, no file carried over
        self.controller = UploadController(self.context.store, self.context.settings, self.identity)
        self.context.users.save_identity(self.identity)

        self.bind(host, "select-file", lambda file: self.controller.select_file(file))
        self.bind(host, "remove-file", lambda: self.controller.remove_file())
        self.bind(host, "submit", lambda title, team_count: self.controller.start_submit(title, team_count))

    def unmount(self, host: ViewHost) -> None:
        if self.controller is not None:
            self.controller.teardown()
        super().unmount(host)

    def template_context(self) -> dict:
        return {"identity": self.identity, "form": self.controller}


class ManagerView(View):
    """Dashboard; accepts q, sort and direction query parameters"""

    name = "manager"

    def __init__(self, context: PortalContext, location: Location, live: bool = False):
        super().__init__(context, location)
        self.live = live
        self.controller: Optional[DashboardController] = None

    def mount(self, host: ViewHost) -> None:
        super().mount(host)
        self.controller = DashboardController(self.context.store, poll_interval=self.context.settings.poll_interval)

        self.bind(host, "search", lambda term: self.controller.search(term))
        self.bind(host, "sort", lambda column, direction=None: self.controller.sort(column, direction))
        self.bind(host, "refresh", lambda: self._schedule(self.controller.load()))
        self.bind(host, "delete", lambda submission_id: self._schedule(self.controller.delete(submission_id)))
        self.bind(host, "clear-all", lambda: self._schedule(self.controller.clear_all()))

    def _schedule(self, coro):
        return asyncio.get_running_loop().create_task(coro)

    async def activate(self) -> None:
        await self.controller.load()
        self.apply_query(self.location.query)
        if self.live:
            self.controller.start_polling()

    def apply_query(self, query: dict) -> None:
        term = query.get("q", "")
        if term:
            self.controller.search(term)
        column = query.get("sort")
        if column in SORT_KEYS:
            direction = query.get("direction")
            self.controller.sort(column, direction if direction in (ASC, DESC) else None)

    def unmount(self, host: ViewHost) -> None:
        if self.controller is not None:
            self.controller.stop_polling()
        super().unmount(host)

    def template_context(self) -> dict:
        return {"dashboard": self.controller, "stats": self.controller.stats}


def build_router(context: PortalContext, history: Optional[History] = None,
                 host: Optional[ViewHost] = None, live: bool = False) -> Router:
    """
    Route table for the portal

    Args:
        context: Application context shared by all views
        history: Navigation history (defaults to "/")
        host: Mount point (a new one by default)
        live: Start the dashboard's background poll when it is mounted
    """
    router = Router(history or History(), host or ViewHost())
    router.add_route("/", lambda location: HomeView(context, location))
    router.add_route("/submit", lambda location: SubmitView(context, location))
    router.add_route("/manager", lambda location: ManagerView(context, location, live=live))
    return router

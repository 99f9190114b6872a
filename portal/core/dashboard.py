"""
Dashboard Controller - sortable, searchable view over the Submission Store

Every change (search, sort, reload) rebuilds the visible rows from the
full in-memory listing. The background poll compares only the submission
count with the count at the last load, so edits that keep the count the
same (a renamed title, say) are not picked up until the next reload.
"""
import asyncio
import logging
from typing import Callable, Dict, List, Optional

from portal.errors import NotFoundError, PortalError
from portal.models import Submission
from portal.services.store import SubmissionStore
from portal.utils import display_name


logger = logging.getLogger(__name__)

ASC = "asc"
DESC = "desc"

# Column -> sort key
SORT_KEYS: Dict[str, Callable[[Submission], object]] = {
    "title": lambda s: s.title.casefold(),
    "name": lambda s: display_name(s.full_name, s.username).casefold(),
    "team_count": lambda s: s.team_count,
    "created_at": lambda s: s.created_at,
}

LOAD_ERROR_MESSAGE = "Could not load submissions."


def matches(submission: Submission, term: str) -> bool:
    """Case-insensitive substring match over title and display name"""
    needle = term.strip().casefold()
    if not needle:
        return True
    name = display_name(submission.full_name, submission.username)
    return needle in submission.title.casefold() or needle in name.casefold()


def project(submissions: List[Submission], term: str = "", column: Optional[str] = None,
            direction: str = ASC) -> List[Submission]:
    """Filter then stable-sort a listing"""
    rows = [s for s in submissions if matches(s, term)]
    if column:
        rows = sorted(rows, key=SORT_KEYS[column], reverse=(direction == DESC))
    return rows


class DashboardController:
    """Read-only projection of the store for the manager view"""

    def __init__(self, store: SubmissionStore, poll_interval: float = 30.0):
        self.store = store
        self.poll_interval = poll_interval

        self.submissions: List[Submission] = []
        self.rows: List[Submission] = []
        self.search_term = ""
        self.sort_column: Optional[str] = None
        self.sort_direction = ASC
        self.error: Optional[str] = None
        self.loaded_count: Optional[int] = None
        self.render_count = 0

        self._poll_task: Optional[asyncio.Task] = None

    # ==================== LOADING ====================

    async def load(self) -> bool:
        """
        Fetch the full listing and re-render

        On failure the table is replaced by an error placeholder with a
        manual retry; nothing is retried automatically.
        """
        try:
            submissions = await self.store.list_submissions()
        except Exception as e:
            if not isinstance(e, PortalError):
                logger.error(f"❌ Unexpected error listing submissions: {type(e).__name__}: {e}", exc_info=True)
            else:
                logger.error(f"❌ Failed to load submissions: {e.message}")
            self.submissions = []
            self.loaded_count = None
            self.error = LOAD_ERROR_MESSAGE
            self._render()
            return False

        self.submissions = list(submissions)
        self.loaded_count = len(self.submissions)
        self.error = None
        self._render()
        return True

    # ==================== PROJECTION ====================

    def search(self, term: str) -> List[Submission]:
        self.search_term = term or ""
        self._render()
        return self.rows

    def next_direction(self, column: str) -> str:
        """Direction a click on column would apply"""
        if column == self.sort_column:
            return DESC if self.sort_direction == ASC else ASC
        return ASC

    def sort(self, column: str, direction: Optional[str] = None) -> List[Submission]:
        """
        Sort by column; repeated clicks toggle, a new column starts ascending

        Args:
            column: One of SORT_KEYS
            direction: Explicit direction (e.g. from a query string)
        """
        if column not in SORT_KEYS:
            raise ValueError(f"Unknown sort column: {column}")
        if direction not in (None, ASC, DESC):
            raise ValueError(f"Unknown sort direction: {direction}")

        self.sort_direction = direction or self.next_direction(column)
        self.sort_column = column
        self._render()
        return self.rows

    def _render(self) -> None:
        # Full clear-and-rebuild of the visible rows
        self.rows = project(self.submissions, self.search_term, self.sort_column, self.sort_direction)
        self.render_count += 1

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "total_submissions": len(self.submissions),
            "total_participants": sum(s.team_count for s in self.submissions),
        }

    # ==================== MUTATIONS ====================

    async def delete(self, submission_id: str) -> bool:
        """
        Delete a submission and reload

        An id that no longer exists is treated as already deleted.
        """
        try:
            await self.store.delete_submission(submission_id)
        except NotFoundError:
            logger.info(f"Submission {submission_id} already deleted")
        except PortalError as e:
            logger.error(f"❌ Failed to delete submission {submission_id}: {e.message}")
            self.error = f"Could not delete submission: {e.message}"
            return False
        return await self.load()

    async def clear_all(self) -> bool:
        try:
            removed = await self.store.clear()
        except PortalError as e:
            logger.error(f"❌ Failed to clear submissions: {e.message}")
            self.error = f"Could not clear submissions: {e.message}"
            return False
        logger.info(f"🗑️ Cleared {removed} submissions")
        return await self.load()

    # ==================== POLLING ====================

    async def poll_once(self) -> bool:
        """
        Reload only if the submission count changed since the last load

        Returns:
            True when the table was re-rendered
        """
        try:
            count = await self.store.count_submissions()
        except Exception as e:
            logger.warning(f"⚠️ Dashboard poll failed: {e}")
            return False

        if count == self.loaded_count:
            return False
        logger.debug(f"Submission count changed {self.loaded_count} -> {count}, reloading")
        return await self.load()

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.poll_once()

    def start_polling(self) -> asyncio.Task:
        if self._poll_task is None or self._poll_task.done():
            self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        return self._poll_task

    def stop_polling(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

"""
Upload Controller - one form instance on the submit view

Drives a submission attempt through
    Idle -> FileSelected -> Validating -> Uploading -> Recording -> Done | Failed
and surfaces progress and failures as user-visible state.

Rules:
  - Validation strictly precedes upload, upload precedes recording
  - Only one attempt in flight; submit is ignored while busy
  - Transfer failure keeps the selected file so the user can retry
  - Recording failure leaves the uploaded object orphaned (logged, not
    cleaned up) and resets the form to Idle
"""
import asyncio
import logging
import time
from typing import Callable, List, Optional, Set

from portal.core.progress import ProgressChannel, ProgressEvent, ProgressTracker
from portal.errors import PortalError, StoreError, TransferError, ValidationError
from portal.models import (
    SelectedFile, Settings, Submission, SubmissionCreate, SubmitterIdentity, UploadPhase
)
from portal.services.store import SubmissionStore


logger = logging.getLogger(__name__)

BUSY_PHASES = {UploadPhase.VALIDATING, UploadPhase.UPLOADING, UploadPhase.RECORDING}

DEFAULT_TEAM_COUNT = 1

SUCCESS_MESSAGE = "Your video has been submitted. Thank you!"


class UploadController:
    """State machine for submission attempts of one form instance"""

    def __init__(self, store: SubmissionStore, settings: Settings,
                 identity: Optional[SubmitterIdentity] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.store = store
        self.settings = settings
        self.identity = identity or SubmitterIdentity()
        self._clock = clock

        self.phase = UploadPhase.IDLE
        self.phase_history: List[UploadPhase] = [UploadPhase.IDLE]
        self.selected_file: Optional[SelectedFile] = None
        self.title = ""
        self.team_count = DEFAULT_TEAM_COUNT

        self.outcome: Optional[UploadPhase] = None   # DONE or FAILED for the last attempt
        self.message: Optional[str] = None
        self.error: Optional[PortalError] = None
        self.progress: Optional[ProgressEvent] = None
        self.last_submission: Optional[Submission] = None

        self._channels: List[ProgressChannel] = []
        self._tasks: Set[asyncio.Task] = set()
        self.closed = False

    # ==================== STATE ====================

    @property
    def busy(self) -> bool:
        return self.phase in BUSY_PHASES

    @property
    def submit_enabled(self) -> bool:
        return not self.busy and not self.closed

    def _set_phase(self, phase: UploadPhase) -> None:
        logger.debug(f"Upload phase {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.phase_history.append(phase)

    def _resting_phase(self) -> UploadPhase:
        return UploadPhase.FILE_SELECTED if self.selected_file else UploadPhase.IDLE

    # ==================== FILE SELECTION ====================

    def select_file(self, file: SelectedFile) -> bool:
        """
        Hold a picked or dropped file, replacing any previous selection

        Returns False (state unchanged, message set) for non-video files
        or while an attempt is in flight.
        """
        if self.busy or self.closed:
            return False

        if not (file.content_type or "").startswith(self.settings.accepted_mime_prefix):
            self.error = ValidationError("file", "Please select a valid video file.")
            self.message = self.error.message
            logger.info(f"Rejected file {file.name} ({file.content_type or 'unknown type'})")
            return False

        self.selected_file = file
        self.error = None
        self.message = None
        if self.phase != UploadPhase.FILE_SELECTED:
            self._set_phase(UploadPhase.FILE_SELECTED)
        return True

    def remove_file(self) -> None:
        if self.busy or self.closed:
            return
        self.selected_file = None
        if self.phase != UploadPhase.IDLE:
            self._set_phase(UploadPhase.IDLE)

    # ==================== PROGRESS ====================

    def subscribe(self) -> ProgressChannel:
        """Progress stream for the next (or current) attempt"""
        channel = ProgressChannel()
        if self.closed:
            channel.close()
        else:
            self._channels.append(channel)
        return channel

    def _make_progress_callback(self, tracker: ProgressTracker):
        def on_progress(bytes_sent: int, bytes_total: int, started_at: float) -> None:
            event = tracker.update(bytes_sent, bytes_total, started_at)
            self.progress = event
            for channel in self._channels:
                channel.publish(event)
        return on_progress

    def _close_channels(self) -> None:
        channels, self._channels = self._channels, []
        for channel in channels:
            channel.close()

    # ==================== SUBMIT ====================

    def validate(self, title, team_count) -> tuple:
        """
        Check the form before any network activity

        Returns:
            (trimmed title, team count as int)

        Raises:
            ValidationError: naming the first missing or invalid field
        """
        if self.selected_file is None:
            raise ValidationError("file", "Please select a video file.")
        if self.selected_file.size > self.settings.max_upload_bytes:
            raise ValidationError("file", f"File size should be less than {self.settings.max_upload_mb}MB")

        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationError("title", "Please enter a video title.")

        try:
            count = int(str(team_count).strip())
        except (TypeError, ValueError):
            raise ValidationError("team_count", "Team count must be a whole number.")
        if count < 1 or count > self.settings.max_team_count:
            raise ValidationError(
                "team_count",
                f"Team count must be between 1 and {self.settings.max_team_count}."
            )
        return clean_title, count

    async def submit(self, title, team_count) -> Optional[Submission]:
        """
        Run one attempt: validate, upload, record

        Returns:
            The recorded Submission, or None when the attempt failed or was
            ignored because another attempt is in flight
        """
        if not self.submit_enabled:
            logger.debug("Submit ignored: attempt already in flight")
            return None

        self.title = title or ""
        self.team_count = team_count
        self.error = None
        self.message = None
        self.progress = None
        self._set_phase(UploadPhase.VALIDATING)

        try:
            clean_title, count = self.validate(title, team_count)
        except ValidationError as e:
            return self._fail(e)

        file = self.selected_file
        self._set_phase(UploadPhase.UPLOADING)
        try:
            result = await self.store.upload(file, self._make_progress_callback(ProgressTracker(self._clock)))
        except TransferError as e:
            return self._fail(e)
        except PortalError as e:
            return self._fail(TransferError(e.message))
        except Exception as e:
            logger.error(f"❌ Unexpected upload error for {file.name}: {type(e).__name__}: {e}", exc_info=True)
            return self._fail(TransferError("Failed to upload video. Please try again."))

        self._set_phase(UploadPhase.RECORDING)
        record = SubmissionCreate(
            title=clean_title,
            team_count=count,
            location=result.location,
            full_name=self.identity.full_name or None,
            username=self.identity.username or None,
            tg_id=self.identity.tg_id or None,
        )
        try:
            submission = await self.store.record_submission(record)
        except Exception as e:
            if not isinstance(e, PortalError):
                logger.error(f"❌ Unexpected error recording submission: {type(e).__name__}: {e}", exc_info=True)
            logger.warning(f"⚠️ Uploaded object {result.location} is orphaned: metadata write failed")
            message = e.message if isinstance(e, PortalError) else "Failed to save submission. Please try again."
            # The attempt is over; the uploaded object stays where it is
            self.selected_file = None
            return self._fail(StoreError(message, location=result.location))

        return self._succeed(submission)

    def start_submit(self, title, team_count) -> Optional[asyncio.Task]:
        """Schedule submit() on the running loop (view event handlers)"""
        if self.closed:
            return None
        task = asyncio.get_running_loop().create_task(self.submit(title, team_count))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _succeed(self, submission: Submission) -> Submission:
        self._set_phase(UploadPhase.DONE)
        self.outcome = UploadPhase.DONE
        self.last_submission = submission
        self.message = SUCCESS_MESSAGE
        logger.info(f"✅ Submission {submission.id} complete: '{submission.title}'")

        # Reset the form for the next entry
        self.selected_file = None
        self.title = ""
        self.team_count = DEFAULT_TEAM_COUNT
        self._close_channels()
        self._set_phase(UploadPhase.IDLE)
        return submission

    def _fail(self, error: PortalError) -> None:
        self._set_phase(UploadPhase.FAILED)
        self.outcome = UploadPhase.FAILED
        self.error = error
        self.message = error.message
        logger.info(f"Submission attempt failed ({type(error).__name__}): {error.message}")
        self._close_channels()
        self._set_phase(self._resting_phase())
        return None

    # ==================== LIFECYCLE ====================

    def teardown(self) -> None:
        """Detach from the view; in-flight attempts are abandoned"""
        self.closed = True
        for task in list(self._tasks):
            task.cancel()
        self._close_channels()

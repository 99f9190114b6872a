"""
Submission Store - metadata records plus stored video objects

LocalSubmissionStore keeps records in memory and writes objects under a
media directory served at a public URL prefix.
"""
import asyncio
import itertools
import logging
import re
import time
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Optional

from portal.errors import NotFoundError, PortalError, TransferError, ValidationError
from portal.models import SelectedFile, Submission, SubmissionCreate, UploadResult


logger = logging.getLogger(__name__)

# on_progress(bytes_sent, bytes_total, started_at)
ProgressCallback = Callable[[int, int, float], None]
SubmissionListener = Callable[[Submission], None]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def secure_filename(name: str) -> str:
    """Reduce a client-supplied filename to a safe object name component"""
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "video"


def iter_chunks(data: bytes, chunk_size: int):
    for offset in range(0, len(data), chunk_size):
        yield data[offset:offset + chunk_size]


async def limit_stream(chunks: AsyncIterator[bytes], max_bytes: int) -> AsyncIterator[bytes]:
    """Pass chunks through, failing once more than max_bytes have been seen"""
    received = 0
    async for chunk in chunks:
        received += len(chunk)
        if received > max_bytes:
            raise ValidationError("file", f"File size should be less than {max_bytes // (1024 * 1024)}MB")
        yield chunk


def validate_submission(data: SubmissionCreate) -> SubmissionCreate:
    """Enforce record invariants; returns a copy with the title trimmed"""
    title = (data.title or "").strip()
    if not title:
        raise ValidationError("title", "Title must not be empty")
    if data.team_count < 1:
        raise ValidationError("team_count", "Team count must be a positive integer")
    if not (data.location or "").strip():
        raise ValidationError("location", "Video location is required")
    return data.model_copy(update={"title": title})


class SubmissionStore(ABC):
    """Contract consumed by the upload and dashboard controllers"""

    def __init__(self):
        self._listeners: List[SubmissionListener] = []

    def add_listener(self, listener: SubmissionListener) -> None:
        """Call listener(submission) after every successful record"""
        self._listeners.append(listener)

    def _notify(self, submission: Submission) -> None:
        for listener in self._listeners:
            try:
                listener(submission)
            except Exception as e:
                # Notification never rolls back or fails the insert
                logger.error(f"❌ Submission listener failed for {submission.id}: {e}", exc_info=True)

    @abstractmethod
    async def upload(self, file: SelectedFile, on_progress: Optional[ProgressCallback] = None) -> UploadResult:
        ...

    async def upload_stream(self, filename: str, chunks: AsyncIterator[bytes], total: int = 0,
                            on_progress: Optional[ProgressCallback] = None,
                            content_type: str = "application/octet-stream") -> UploadResult:
        """Buffer a chunk stream and hand it to upload()"""
        data = b"".join([chunk async for chunk in chunks])
        file = SelectedFile(name=filename, size=len(data), content_type=content_type, data=data)
        return await self.upload(file, on_progress)

    @abstractmethod
    async def record_submission(self, data: SubmissionCreate) -> Submission:
        ...

    @abstractmethod
    async def list_submissions(self) -> List[Submission]:
        """All submissions, newest first"""

    @abstractmethod
    async def delete_submission(self, submission_id: str) -> None:
        ...

    async def count_submissions(self) -> int:
        return len(await self.list_submissions())

    async def clear(self) -> int:
        """Delete every submission, returns how many were removed"""
        removed = 0
        for submission in await self.list_submissions():
            try:
                await self.delete_submission(submission.id)
                removed += 1
            except NotFoundError:
                continue
        return removed

    async def close(self) -> None:
        pass


class LocalSubmissionStore(SubmissionStore):
    """In-memory records, objects on local disk"""

    def __init__(self, media_dir: str, media_url: str = "/media", chunk_size: int = 1024 * 1024,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.media_dir = Path(media_dir)
        self.media_url = media_url.rstrip("/")
        self.chunk_size = chunk_size
        self._clock = clock
        self._records: Dict[str, Submission] = {}
        self._order: Dict[str, int] = {}
        self._sequence = itertools.count()

    # ==================== OBJECTS ====================

    async def upload(self, file: SelectedFile, on_progress: Optional[ProgressCallback] = None) -> UploadResult:
        async def chunks():
            for chunk in iter_chunks(file.data, self.chunk_size):
                yield chunk

        return await self.upload_stream(file.name, chunks(), total=file.size or len(file.data),
                                        on_progress=on_progress)

    async def upload_stream(self, filename: str, chunks: AsyncIterator[bytes], total: int = 0,
                            on_progress: Optional[ProgressCallback] = None,
                            content_type: str = "application/octet-stream") -> UploadResult:
        """
        Write an object chunk by chunk

        Args:
            filename: Client-supplied name, sanitized before use
            chunks: Byte chunks in order
            total: Expected size, 0 when unknown
            on_progress: Called after each chunk is written
            content_type: Not stored; objects are served by extension

        Returns:
            UploadResult with the public location

        Raises:
            TransferError: If the object cannot be written
        """
        object_name = f"{uuid.uuid4().hex[:12]}_{secure_filename(filename)}"
        path = self.media_dir / object_name
        started_at = self._clock()
        sent = 0

        try:
            self.media_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as f:
                async for chunk in chunks:
                    f.write(chunk)
                    sent += len(chunk)
                    if on_progress:
                        on_progress(sent, max(total, sent), started_at)
                    # Yield to the loop between chunks
                    await asyncio.sleep(0)
        except OSError as e:
            path.unlink(missing_ok=True)
            logger.error(f"❌ Failed to store object {object_name}: {e}")
            raise TransferError(f"Upload failed: {e}") from e
        except PortalError as e:
            path.unlink(missing_ok=True)
            logger.warning(f"⚠️ Discarded partial object {object_name} after {sent} bytes: {e.message}")
            raise

        if sent == 0:
            path.unlink(missing_ok=True)
            raise TransferError("Upload failed: empty file")

        logger.info(f"📦 Stored {object_name} ({sent} bytes)")
        return UploadResult(location=f"{self.media_url}/{object_name}", size=sent)

    def _object_path(self, location: str) -> Optional[Path]:
        prefix = f"{self.media_url}/"
        if not location.startswith(prefix):
            return None
        return self.media_dir / secure_filename(location[len(prefix):])

    # ==================== RECORDS ====================

    async def record_submission(self, data: SubmissionCreate) -> Submission:
        data = validate_submission(data)
        submission = Submission(
            id=uuid.uuid4().hex[:12],
            title=data.title,
            team_count=data.team_count,
            video_url=data.location,
            full_name=data.full_name or None,
            username=data.username or None,
            tg_id=data.tg_id or None,
        )
        self._records[submission.id] = submission
        self._order[submission.id] = next(self._sequence)
        logger.info(f"✅ Recorded submission {submission.id} '{submission.title}' (team of {submission.team_count})")

        self._notify(submission)
        return submission

    async def list_submissions(self) -> List[Submission]:
        return sorted(
            self._records.values(),
            key=lambda s: (s.created_at, self._order[s.id]),
            reverse=True,
        )

    async def get_submission(self, submission_id: str) -> Submission:
        submission = self._records.get(submission_id)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        return submission

    async def count_submissions(self) -> int:
        return len(self._records)

    async def delete_submission(self, submission_id: str) -> None:
        submission = self._records.pop(submission_id, None)
        if submission is None:
            raise NotFoundError(f"Submission {submission_id} not found")
        self._order.pop(submission_id, None)

        # Object removal is best-effort
        path = self._object_path(submission.video_url)
        if path is not None:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"⚠️ Could not remove object for {submission_id}: {e}")

        logger.info(f"🗑️ Deleted submission {submission_id}")

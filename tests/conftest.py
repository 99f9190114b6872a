"""
Shared fixtures for portal tests
"""
import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from portal.errors import NotFoundError, StoreError, TransferError
from portal.models import SelectedFile, Settings, Submission, SubmissionCreate, UploadResult
from portal.services.notifier import WebhookNotifier
from portal.services.store import LocalSubmissionStore, SubmissionStore
from portal.state import build_context


MB = 1024 * 1024


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore(SubmissionStore):
    """Scripted Submission Store recording every call"""

    def __init__(self, progress_steps=(0.0, 0.5, 1.0), fail_upload: bool = False,
                 fail_record: bool = False, fail_list: bool = False, hold_upload: bool = False,
                 clock: Optional[FakeClock] = None):
        super().__init__()
        self.progress_steps = progress_steps
        self.fail_upload = fail_upload
        self.fail_record = fail_record
        self.fail_list = fail_list
        self.hold_upload = hold_upload
        self.clock = clock or FakeClock()
        self.upload_started = asyncio.Event()
        self.release_upload = asyncio.Event()
        self.upload_calls: List[SelectedFile] = []
        self.record_calls: List[SubmissionCreate] = []
        self.delete_calls: List[str] = []
        self.count_calls = 0
        self.submissions: List[Submission] = []
        self._ids = itertools.count(1)

    async def upload(self, file, on_progress=None):
        self.upload_calls.append(file)
        self.upload_started.set()
        if self.hold_upload:
            await self.release_upload.wait()
        if self.fail_upload:
            raise TransferError("Connection reset")
        started_at = self.clock()
        for fraction in self.progress_steps:
            self.clock.advance(1.0)
            if on_progress:
                on_progress(int(file.size * fraction), file.size, started_at)
        return UploadResult(location=f"/media/obj-{len(self.upload_calls)}", size=file.size)

    async def record_submission(self, data):
        self.record_calls.append(data)
        if self.fail_record:
            raise StoreError("Database unavailable")
        submission = Submission(
            id=str(next(self._ids)),
            title=data.title,
            team_count=data.team_count,
            video_url=data.location,
            full_name=data.full_name,
            username=data.username,
            tg_id=data.tg_id,
        )
        self.submissions.insert(0, submission)
        self._notify(submission)
        return submission

    async def list_submissions(self):
        if self.fail_list:
            raise StoreError("Listing unavailable")
        return list(self.submissions)

    async def count_submissions(self):
        self.count_calls += 1
        if self.fail_list:
            raise StoreError("Listing unavailable")
        return len(self.submissions)

    async def delete_submission(self, submission_id):
        self.delete_calls.append(submission_id)
        for submission in self.submissions:
            if submission.id == submission_id:
                self.submissions.remove(submission)
                return
        raise NotFoundError(f"Submission {submission_id} not found")


def make_submission(id: str, title: str, full_name=None, username=None, team_count: int = 1,
                    minutes_ago: int = 0) -> Submission:
    created = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return Submission(
        id=id,
        title=title,
        team_count=team_count,
        video_url=f"/media/{id}.mp4",
        full_name=full_name,
        username=username,
        created_at=created,
    )


def video_file(size: int = 10 * MB, name: str = "demo.mp4", content_type: str = "video/mp4") -> SelectedFile:
    return SelectedFile(name=name, size=size, content_type=content_type, data=b"")


@pytest.fixture
def settings(tmp_path):
    return Settings(media_dir=str(tmp_path / "media"), upload_chunk_size=4)


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def local_store(settings):
    return LocalSubmissionStore(settings.media_dir, settings.media_url, chunk_size=settings.upload_chunk_size)


@pytest.fixture
def context(settings, fake_store):
    return build_context(settings, store=fake_store, notifier=WebhookNotifier(url=None))

"""
Data models for the contest portal
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmitterIdentity(BaseModel):
    """Opaque identity passed to the submit view as query parameters"""
    full_name: str = ""
    username: str = ""    # handle, without the leading "@"
    tg_id: str = ""       # external id

    def is_empty(self) -> bool:
        return not (self.full_name or self.username or self.tg_id)


class SubmissionCreate(BaseModel):
    """Metadata written after a successful upload"""
    title: str
    team_count: int
    location: str
    full_name: Optional[str] = None
    username: Optional[str] = None
    tg_id: Optional[str] = None


class Submission(BaseModel):
    """One contest entry as held by the Submission Store"""
    id: str
    title: str
    team_count: int = Field(ge=1)
    video_url: str
    full_name: Optional[str] = None
    username: Optional[str] = None
    tg_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class SelectedFile(BaseModel):
    """A file picked or dropped on the submit view"""
    name: str
    size: int
    content_type: str
    data: bytes = b""


class UploadResult(BaseModel):
    """Public location of an uploaded object"""
    location: str
    size: int = 0


class UploadPhase(str, Enum):
    """States of one submission attempt"""
    IDLE = "idle"
    FILE_SELECTED = "file_selected"
    VALIDATING = "validating"
    UPLOADING = "uploading"
    RECORDING = "recording"
    DONE = "done"
    FAILED = "failed"


class ContestUser(BaseModel):
    """Submitter identity remembered by the user registry"""
    tg_id: str
    full_name: Optional[str] = None
    username: Optional[str] = None
    updated_at: datetime = Field(default_factory=utcnow)


class Settings(BaseModel):
    """Portal configuration"""
    title: str = "Short Film Contest"
    max_team_count: int = 1000
    max_upload_mb: int = 500
    accepted_mime_prefix: str = "video/"
    poll_interval: float = 30.0         # seconds between dashboard refreshes
    upload_chunk_size: int = 1024 * 1024
    media_dir: str = "data/media"
    media_url: str = "/media"
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    webhook_timeout: float = 10.0

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

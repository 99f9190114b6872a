"""
Submission Store client for a remote portal's /api surface
"""
import logging
import time
from typing import Callable, List, Optional

import httpx

from portal.errors import NotFoundError, StoreError, TransferError, ValidationError
from portal.models import SelectedFile, Submission, SubmissionCreate, UploadResult
from portal.services.store import ProgressCallback, SubmissionStore, iter_chunks


logger = logging.getLogger(__name__)


def _error_detail(response: httpx.Response) -> dict:
    try:
        detail = response.json().get("detail")
    except ValueError:
        return {"message": response.text}
    if isinstance(detail, dict):
        return detail
    return {"message": str(detail)}


class HttpSubmissionStore(SubmissionStore):
    """
    Talks to POST /api/uploads and the /api/submissions endpoints

    Uploads stream the raw bytes as the request body; on_progress fires as
    the transport pulls each chunk.
    """

    def __init__(self, base_url: str, chunk_size: int = 256 * 1024, timeout: Optional[float] = None,
                 client: Optional[httpx.AsyncClient] = None,
                 clock: Callable[[], float] = time.monotonic):
        super().__init__()
        self.chunk_size = chunk_size
        self._clock = clock
        if client is None:
            # Transport defaults apply unless a timeout is given
            options = {"timeout": timeout} if timeout is not None else {}
            client = httpx.AsyncClient(base_url=base_url, **options)
        self._client = client

    async def upload(self, file: SelectedFile, on_progress: Optional[ProgressCallback] = None) -> UploadResult:
        total = len(file.data)
        started_at = self._clock()

        async def body():
            sent = 0
            for chunk in iter_chunks(file.data, self.chunk_size):
                yield chunk
                sent += len(chunk)
                if on_progress:
                    on_progress(sent, total, started_at)

        try:
            response = await self._client.post(
                "/api/uploads",
                params={"filename": file.name},
                headers={"Content-Type": file.content_type, "Content-Length": str(total)},
                content=body(),
            )
        except httpx.HTTPError as e:
            logger.error(f"❌ Upload of {file.name} failed: {e}")
            raise TransferError(f"Upload failed: {e}") from e

        if response.status_code >= 400:
            detail = _error_detail(response)
            raise TransferError(f"Upload rejected ({response.status_code}): {detail.get('message')}")

        return UploadResult(**response.json())

    async def record_submission(self, data: SubmissionCreate) -> Submission:
        try:
            response = await self._client.post("/api/submissions", json=data.model_dump())
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to record submission: {e}", location=data.location) from e

        if response.status_code == 400:
            detail = _error_detail(response)
            raise ValidationError(detail.get("field", "unknown"), detail.get("message", "Invalid submission"))
        if response.status_code >= 400:
            detail = _error_detail(response)
            raise StoreError(f"Failed to record submission: {detail.get('message')}", location=data.location)

        return Submission(**response.json())

    async def list_submissions(self) -> List[Submission]:
        try:
            response = await self._client.get("/api/submissions")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to list submissions: {e}") from e
        return [Submission(**item) for item in response.json()["submissions"]]

    async def count_submissions(self) -> int:
        try:
            response = await self._client.get("/api/submissions/count")
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to count submissions: {e}") from e
        return int(response.json()["count"])

    async def delete_submission(self, submission_id: str) -> None:
        try:
            response = await self._client.delete(f"/api/submissions/{submission_id}")
        except httpx.HTTPError as e:
            raise StoreError(f"Failed to delete submission: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"Submission {submission_id} not found")
        if response.status_code >= 400:
            raise StoreError(f"Failed to delete submission: {_error_detail(response).get('message')}")

    async def close(self) -> None:
        await self._client.aclose()

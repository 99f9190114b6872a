"""
Submission Store endpoints (objects and metadata records)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from portal.core.dashboard import ASC, DESC, SORT_KEYS, project
from portal.errors import PortalError, ValidationError, to_http_exception
from portal.models import SubmissionCreate
from portal.services.store import limit_stream
from portal.state import PortalContext, get_context


router = APIRouter(prefix="/api", tags=["submissions"])
logger = logging.getLogger(__name__)


@router.post("/uploads")
async def upload_object(
    request: Request,
    filename: str = Query(..., min_length=1),
    ctx: PortalContext = Depends(get_context),
):
    """
    Store a video object streamed as the raw request body

    Request:
        POST /api/uploads?filename=demo.mp4
        Content-Type: video/mp4

    Response:
        {"location": "/media/<object>", "size": 10485760}
    """
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith(ctx.settings.accepted_mime_prefix):
        raise to_http_exception(ValidationError("file", f"Unsupported content type: {content_type or 'none'}"))

    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > ctx.settings.max_upload_bytes:
        raise to_http_exception(
            ValidationError("file", f"File size should be less than {ctx.settings.max_upload_mb}MB")
        )

    client_ip = request.client.host if request.client else "unknown"
    logger.info(f"📥 Upload of {filename} from {client_ip}")

    try:
        result = await ctx.store.upload_stream(
            filename,
            limit_stream(request.stream(), ctx.settings.max_upload_bytes),
            total=int(declared) if declared and declared.isdigit() else 0,
            content_type=content_type,
        )
    except PortalError as e:
        raise to_http_exception(e)
    return result.model_dump()


@router.post("/submissions")
async def create_submission(payload: SubmissionCreate, ctx: PortalContext = Depends(get_context)):
    """Record metadata for an uploaded object"""
    try:
        submission = await ctx.store.record_submission(payload)
    except PortalError as e:
        raise to_http_exception(e)
    return submission.model_dump(mode="json")


@router.get("/submissions")
async def list_submissions(
    q: str = "",
    sort: Optional[str] = None,
    direction: str = ASC,
    ctx: PortalContext = Depends(get_context),
):
    """List submissions (newest first), optionally filtered and sorted"""
    if sort is not None and sort not in SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"Unknown sort column: {sort}")
    if direction not in (ASC, DESC):
        raise HTTPException(status_code=400, detail=f"Unknown sort direction: {direction}")

    try:
        submissions = await ctx.store.list_submissions()
    except PortalError as e:
        raise to_http_exception(e)

    rows = project(submissions, q, sort, direction)
    return {
        "submissions": [s.model_dump(mode="json") for s in rows],
        "total": len(submissions),
    }


@router.get("/submissions/count")
async def count_submissions(ctx: PortalContext = Depends(get_context)):
    try:
        return {"count": await ctx.store.count_submissions()}
    except PortalError as e:
        raise to_http_exception(e)


@router.delete("/submissions/{submission_id}")
async def delete_submission(submission_id: str, ctx: PortalContext = Depends(get_context)):
    """Delete a submission and its stored object (object removal is best-effort)"""
    try:
        await ctx.store.delete_submission(submission_id)
    except PortalError as e:
        raise to_http_exception(e)
    return {"success": True, "id": submission_id}

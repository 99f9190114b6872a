"""
Configuration endpoint
"""
from fastapi import APIRouter, Depends

from portal.state import PortalContext, get_context


router = APIRouter(tags=["config"])


@router.get("/config")
async def get_config(ctx: PortalContext = Depends(get_context)):
    """Public settings the submit form and dashboard depend on"""
    settings = ctx.settings
    return {
        "title": settings.title,
        "max_team_count": settings.max_team_count,
        "max_upload_mb": settings.max_upload_mb,
        "accepted_mime_prefix": settings.accepted_mime_prefix,
        "poll_interval": settings.poll_interval,
        "media_url": settings.media_url,
    }

"""
Health check endpoint
"""
from fastapi import APIRouter, Depends

from portal.state import PortalContext, get_context


router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(ctx: PortalContext = Depends(get_context)):
    """Health check endpoint"""
    return {
        "status": "ok",
        "message": f"{ctx.settings.title} - Submission Portal",
        "version": "1.0.0",
        "total_submissions": await ctx.store.count_submissions(),
        "webhook_enabled": ctx.notifier.enabled,
    }

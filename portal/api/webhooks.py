"""
Webhook relay endpoint for datastore insert triggers
"""
import logging

from fastapi import APIRouter, Depends, HTTPException

from portal.errors import DeliveryError
from portal.state import PortalContext, get_context


router = APIRouter(prefix="/webhooks", tags=["webhooks"])
logger = logging.getLogger(__name__)


@router.post("/submission-created")
async def relay_submission(payload: dict, ctx: PortalContext = Depends(get_context)):
    """
    Relay an inserted row to the messaging webhook

    Request:
        {"record": {"id": 1, "video_title": "...", "team_count": 3, ...}}
    """
    record = payload.get("record")
    if not record:
        logger.error("No record data received from webhook")
        raise HTTPException(status_code=400, detail="No record data provided")

    logger.info(f"Received new video contest submission: {record.get('id')}")

    try:
        response = await ctx.notifier.deliver(record)
    except DeliveryError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": "Webhook delivery failed", "status": e.status, "details": e.details or e.message},
        )

    return {
        "success": True,
        "message": "Webhook delivered successfully",
        "webhook_status": response.status_code,
        "webhook_response": response.text,
    }

"""Contest user endpoints"""
from fastapi import APIRouter, Depends

from portal.errors import ValidationError, to_http_exception
from portal.state import PortalContext, get_context


router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("")
async def save_user(payload: dict, ctx: PortalContext = Depends(get_context)):
    tg_id = payload.get("tg_id")
    try:
        action, user = ctx.users.save(
            str(tg_id) if tg_id is not None else "",
            payload.get("full_name"),
            payload.get("username"),
        )
    except ValidationError as e:
        raise to_http_exception(e)
    return {
        "success": True,
        "message": f"User {action} successfully",
        "action": action,
        "data": user.model_dump(mode="json"),
    }

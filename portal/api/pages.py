"""
HTML pages served through the portal Router

Every request gets its own History/ViewHost/Router, so exactly one view is
mounted per page render and its controller is torn down afterwards.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.core.router import History
from portal.core.views import build_router
from portal.models import SelectedFile
from portal.state import PortalContext, get_context


router = APIRouter(tags=["pages"])
logger = logging.getLogger(__name__)

# Unknown paths under this prefix are API misses, not pages
API_PREFIX = "/api"


def request_url(request: Request) -> str:
    url = request.url.path
    if request.url.query:
        url = f"{url}?{request.url.query}"
    return url


async def render_page(ctx: PortalContext, url: str) -> str:
    page_router = build_router(ctx, History(url))
    try:
        view = page_router.handle_route()
        await view.activate()
        return page_router.host.render()
    finally:
        page_router.close()


@router.post("/submit", response_class=HTMLResponse)
async def submit_form(
    title: str = Form(""),
    team_count: str = Form("1"),
    full_name: str = Form(""),
    username: str = Form(""),
    tg_id: str = Form("", alias="id"),
    video: Optional[UploadFile] = File(None),
    ctx: PortalContext = Depends(get_context),
):
    """Run one submission attempt and re-render the form with its outcome"""
    query = urlencode({"full_name": full_name, "username": username, "id": tg_id})
    page_router = build_router(ctx, History(f"/submit?{query}"))
    try:
        view = page_router.handle_route()
        form = view.controller

        if video is not None and video.filename:
            data = await video.read()
            form.select_file(SelectedFile(
                name=video.filename,
                size=len(data),
                content_type=video.content_type or "",
                data=data,
            ))

        if form.error is None:
            await form.submit(title, team_count)
        else:
            # Rejected file; keep what the user typed
            form.title = title
            form.team_count = team_count

        status_code = form.error.status_code if form.error else 200
        return HTMLResponse(content=page_router.host.render(), status_code=status_code)
    finally:
        page_router.close()


@router.post("/manager/delete/{submission_id}")
async def delete_from_dashboard(submission_id: str, ctx: PortalContext = Depends(get_context)):
    page_router = build_router(ctx, History("/manager"))
    try:
        view = page_router.handle_route()
        if not await view.controller.delete(submission_id):
            raise HTTPException(status_code=500, detail=view.controller.error)
    finally:
        page_router.close()
    return RedirectResponse(url="/manager", status_code=303)


@router.post("/manager/clear")
async def clear_dashboard(ctx: PortalContext = Depends(get_context)):
    page_router = build_router(ctx, History("/manager"))
    try:
        view = page_router.handle_route()
        if not await view.controller.clear_all():
            raise HTTPException(status_code=500, detail=view.controller.error)
    finally:
        page_router.close()
    return RedirectResponse(url="/manager", status_code=303)


@router.get("/", response_class=HTMLResponse)
@router.get("/{path:path}", response_class=HTMLResponse)
async def page(request: Request, ctx: PortalContext = Depends(get_context)):
    """Landing, submit and manager views; anything else falls back to landing"""
    if request.url.path == API_PREFIX or request.url.path.startswith(f"{API_PREFIX}/"):
        raise HTTPException(status_code=404, detail="Not Found")
    return HTMLResponse(content=await render_page(ctx, request_url(request)))

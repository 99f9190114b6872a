"""
FastAPI main application
Short film contest submission portal

Modular architecture with separated API routers in portal/api/:
- health.py: Health check
- config.py: Public configuration
- submissions.py: Submission Store API (uploads, records, listing, delete)
- users.py: Contest user registry
- webhooks.py: Webhook relay for new submissions
- pages.py: Landing, submit and manager views (must be included last)

All routers reach shared resources through the PortalContext on app.state.
"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from portal.api import health, submissions, users, webhooks, pages
from portal.api import config as config_router
from portal.config import load_settings
from portal.models import Settings
from portal.services.store import SubmissionStore
from portal.state import build_context


# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    ctx = app.state.portal
    logger.info(f"✅ Portal started: media in {ctx.settings.media_dir}, "
                f"webhook {'on' if ctx.notifier.enabled else 'off'}")

    yield

    # Shutdown: let pending webhook deliveries finish
    await ctx.close()
    logger.info("🛑 Portal shutting down")


def create_app(settings: Optional[Settings] = None, store: Optional[SubmissionStore] = None) -> FastAPI:
    """
    Build the application

    Args:
        settings: Portal settings (loaded from config/portal.yaml by default)
        store: Submission Store (local disk store by default)
    """
    settings = settings or load_settings()

    app = FastAPI(
        title="Short Film Contest Portal",
        description="Video contest submissions with a manager dashboard",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.portal = build_context(settings, store=store)

    # CORS middleware (allow all origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==================== INCLUDE ROUTERS ====================

    # Health check (GET /health)
    app.include_router(health.router)

    # Config endpoint (GET /config)
    app.include_router(config_router.router)

    # Store endpoints (POST /api/uploads, /api/submissions, ...)
    app.include_router(submissions.router)

    # User registry (POST /api/users)
    app.include_router(users.router)

    # Webhook relay (POST /webhooks/submission-created)
    app.include_router(webhooks.router)

    # ==================== STATIC FILES ====================

    # Uploaded videos
    Path(settings.media_dir).mkdir(parents=True, exist_ok=True)
    app.mount(settings.media_url, StaticFiles(directory=settings.media_dir), name="media")

    # Pages last: GET /{path} catches everything else
    app.include_router(pages.router)

    return app


# ==================== RUN SERVER ====================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)

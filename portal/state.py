"""
Application context
Shared resources owned by the application entry point and passed
explicitly to views, controllers and routers
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from portal.models import Settings
from portal.services.notifier import WebhookNotifier
from portal.services.store import LocalSubmissionStore, SubmissionStore
from portal.services.user_registry import UserRegistry


logger = logging.getLogger(__name__)


@dataclass
class PortalContext:
    settings: Settings
    store: SubmissionStore
    notifier: WebhookNotifier
    users: UserRegistry

    async def close(self) -> None:
        await self.notifier.drain()
        await self.store.close()


def build_context(settings: Settings, store: Optional[SubmissionStore] = None,
                  notifier: Optional[WebhookNotifier] = None) -> PortalContext:
    """Wire store, notifier and user registry for one application"""
    if store is None:
        store = LocalSubmissionStore(
            media_dir=settings.media_dir,
            media_url=settings.media_url,
            chunk_size=settings.upload_chunk_size,
        )
    if notifier is None:
        notifier = WebhookNotifier(
            url=settings.webhook_url,
            secret=settings.webhook_secret,
            timeout=settings.webhook_timeout,
        )
    if not notifier.enabled:
        logger.info("Webhook endpoint not configured, new submissions will not be relayed")

    store.add_listener(notifier.schedule)
    return PortalContext(settings=settings, store=store, notifier=notifier, users=UserRegistry())


def get_context(request: Request) -> PortalContext:
    """FastAPI dependency returning the app's context"""
    return request.app.state.portal

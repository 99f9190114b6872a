"""
Webhook relay for new submissions

Delivery is fire-and-forget from the store's point of view: failures are
logged, never retried, and never roll back the recorded submission.
"""
import asyncio
import hashlib
import hmac
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

import httpx

from portal.errors import DeliveryError
from portal.models import Submission


logger = logging.getLogger(__name__)

EVENT_NAME = "video_contest.insert"
PLATFORM = "tg"
USER_AGENT = "Supabase-Webhook/1.0"
SIGNATURE_HEADER = "X-Webhook-Signature"


def record_from_submission(submission: Submission) -> Dict[str, Any]:
    """Flatten a submission into the row shape the webhook relays"""
    return {
        "id": submission.id,
        "full_name": submission.full_name,
        "username": submission.username,
        "video_title": submission.title,
        "team_count": submission.team_count,
        "video_url": submission.video_url,
        "tg_id": submission.tg_id,
        "created_at": submission.created_at.isoformat(),
    }


def sign_body(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


class WebhookNotifier:
    """POSTs a signed JSON payload to the configured endpoint"""

    def __init__(self, url: Optional[str], secret: Optional[str] = None, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.secret = secret
        self.timeout = timeout
        self._transport = transport
        self._pending: Set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def build_payload(self, record: Dict[str, Any]) -> Dict[str, Any]:
        fields = ("id", "full_name", "username", "video_title", "team_count", "video_url", "tg_id", "created_at")
        return {
            "platform": PLATFORM,
            "event": EVENT_NAME,
            "data": {key: record.get(key) for key in fields},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def build_headers(self, body: bytes) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if self.secret:
            headers[SIGNATURE_HEADER] = sign_body(body, self.secret)
        return headers

    async def deliver(self, record: Dict[str, Any]) -> httpx.Response:
        """
        Send one record to the webhook endpoint

        Args:
            record: Row fields (see record_from_submission)

        Returns:
            The endpoint's response (2xx)

        Raises:
            DeliveryError: If no endpoint is configured, the request fails,
                or the endpoint answers with a non-2xx status
        """
        if not self.url:
            raise DeliveryError("Webhook endpoint not configured")

        payload = self.build_payload(record)
        body = json.dumps(payload).encode("utf-8")
        logger.info(f"📤 Sending webhook for submission {record.get('id')} to {self.url}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, content=body, headers=self.build_headers(body))
        except httpx.HTTPError as e:
            raise DeliveryError(f"Webhook delivery failed: {e}") from e

        if not response.is_success:
            logger.error(f"❌ Webhook request failed with status {response.status_code}: {response.text}")
            raise DeliveryError(
                f"Webhook delivery failed with status {response.status_code}",
                status=response.status_code,
                details=response.text,
            )

        logger.info(f"✅ Webhook delivered: {response.status_code}")
        return response

    def schedule(self, submission: Submission) -> Optional[asyncio.Task]:
        """Relay a new submission in the background"""
        if not self.enabled:
            logger.debug(f"Webhook disabled, skipping submission {submission.id}")
            return None

        task = asyncio.get_running_loop().create_task(self._deliver_quietly(record_from_submission(submission)))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver_quietly(self, record: Dict[str, Any]) -> None:
        try:
            await self.deliver(record)
        except DeliveryError as e:
            logger.warning(f"⚠️ {e.message} (submission {record.get('id')})")

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown and tests)"""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

"""Contest user registry utilities"""
import logging
from typing import Dict, Optional, Tuple

from portal.errors import ValidationError
from portal.models import ContestUser, SubmitterIdentity, utcnow


logger = logging.getLogger(__name__)


class UserRegistry:
    """Submitter identities keyed by external id (tg_id)"""

    def __init__(self):
        self._users: Dict[str, ContestUser] = {}

    def save(self, tg_id: str, full_name: Optional[str] = None, username: Optional[str] = None) -> Tuple[str, ContestUser]:
        """
        Create or update a user

        Returns:
            ("created" | "updated", user)
        """
        clean_id = (tg_id or "").strip()
        if not clean_id:
            raise ValidationError("tg_id", "Missing required field: tg_id")

        user = ContestUser(
            tg_id=clean_id,
            full_name=(full_name or "").strip() or None,
            username=(username or "").strip().lstrip("@") or None,
            updated_at=utcnow(),
        )
        action = "updated" if clean_id in self._users else "created"
        self._users[clean_id] = user
        logger.info(f"👤 User {clean_id} {action}")
        return action, user

    def save_identity(self, identity: SubmitterIdentity) -> Optional[str]:
        """Remember an identity passed to the submit view; no-op without an id"""
        if not identity.tg_id:
            return None
        action, _ = self.save(identity.tg_id, identity.full_name, identity.username)
        return action

    def get(self, tg_id: str) -> Optional[ContestUser]:
        return self._users.get(tg_id)

    def __len__(self) -> int:
        return len(self._users)

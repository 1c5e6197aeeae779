# vine_ladder/services/announcement_service.py
"""
Announcements: read-side filtering for a viewer, and sending for coordinators.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ..errors import EligibilityError, ValidationError
from ..models import Announcement, SessionContext
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

TARGET_TYPES = ("all", "player", "team")


def is_relevant(msg: Announcement, session: SessionContext, ladder_id: Optional[str] = None) -> bool:
    """True if a message is addressed to the viewer (and, when given, to the ladder)."""
    if ladder_id and msg.ladder_id and msg.ladder_id != ladder_id:
        return False
    if msg.target_type == "all":
        return True
    if msg.target_type == "player":
        return msg.target_id == session.user_id
    if msg.target_type == "team":
        return bool(msg.target_id) and msg.target_id in session.team_ids
    return False


def filter_for_viewer(
    messages: Iterable[Announcement],
    session: SessionContext,
    ladder_id: Optional[str] = None,
) -> List[Announcement]:
    return [m for m in messages if is_relevant(m, session, ladder_id)]


@dataclass
class AnnouncementService:
    client: SupabaseClient

    def fetch_for_viewer(self, session: SessionContext, ladder_id: Optional[str] = None) -> List[Announcement]:
        """Newest-first announcements the viewer should see."""
        rows = self.client.select("messages", "*", order="created_at", ascending=False)
        messages = [Announcement.from_row(r) for r in rows if isinstance(r, dict)]
        return filter_for_viewer(messages, session, ladder_id)

    def send(
        self,
        session: SessionContext,
        content: str,
        target_type: str = "all",
        target_id: Optional[str] = None,
        ladder_id: Optional[str] = None,
    ) -> Announcement:
        """
        Send an announcement as a coordinator.

        Raises:
            EligibilityError if the viewer is not a coordinator.
            ValidationError for blank content, unknown target type, or a
            player/team target without an id.
        """
        if not session.is_coordinator:
            raise EligibilityError("Only coordinators can send announcements.")

        text = (content or "").strip()
        if not text:
            raise ValidationError("Message content cannot be empty.")
        kind = (target_type or "").strip().lower()
        if kind not in TARGET_TYPES:
            raise ValidationError(f"Unknown target type: {target_type!r}")
        if kind in ("player", "team") and not target_id:
            raise ValidationError(f"Please select a {kind}.")

        row = {
            "sender_id": session.user_id,
            "target_type": kind,
            "target_id": target_id if kind != "all" else None,
            "ladder_id": ladder_id or None,
            "content": text,
            "topic": "announcement",
            "extension": "text",
        }
        inserted = self.client.insert("messages", row)
        logger.info("Announcement sent by %s to %s", session.user_id, kind)
        return Announcement.from_row(inserted[0] if inserted else row)

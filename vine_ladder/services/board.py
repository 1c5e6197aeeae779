# vine_ladder/services/board.py
"""
Per-screen challenge board state.

Holds the upcoming and recent lists for one ladder and one viewer, and applies
local patches only after the backend confirms a transition and only while the
screen's token is still alive. Remote failures become alerts; state is left as it was.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import GatewayError, NotFoundError
from ..models import Alert, Challenge, ScreenToken, SessionContext
from .challenge_service import ChallengeService
from .lifecycle import LifecycleService, allowed_actions

logger = logging.getLogger(__name__)


@dataclass
class ChallengeBoard:
    """Upcoming/recent challenge lists for one ladder, as seen by one viewer."""

    ladder_id: str
    session: SessionContext
    challenges: ChallengeService
    lifecycle: LifecycleService
    token: ScreenToken = field(default_factory=ScreenToken)
    on_outcome: Optional[Callable[[Challenge], None]] = None

    upcoming: List[Challenge] = field(default_factory=list)
    recent: List[Challenge] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def _alert(self, title: str, exc: GatewayError) -> None:
        with self._lock:
            self.alerts.append(Alert(title=title, message=exc.message))

    def _load_list(self, completed: bool) -> None:
        """Fetch one list and store it; a failure stores an empty list and an alert."""
        try:
            items = self.challenges.fetch(self.ladder_id, completed=completed)
        except GatewayError as exc:
            logger.warning("Loading %s challenges for ladder %s failed: %s",
                           "recent" if completed else "upcoming", self.ladder_id, exc)
            items = []
            self._alert("Error", exc)

        if not self.token.alive:
            return
        with self._lock:
            if completed:
                self.recent = items
            else:
                self.upcoming = items

    def load(self) -> "ChallengeBoard":
        """Fetch upcoming and recent lists concurrently; each writes only its own list."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(self._load_list, False), pool.submit(self._load_list, True)]
            for f in futures:
                f.result()
        return self

    def find(self, challenge_id: str) -> Challenge:
        with self._lock:
            for c in self.upcoming + self.recent:
                if c.challenge_id == challenge_id:
                    return c
        raise NotFoundError(f"Challenge {challenge_id} is not on this board")

    def actions(self) -> Dict[str, Tuple[str, ...]]:
        """Allowed actions per challenge id for the viewer (only non-empty entries)."""
        with self._lock:
            items = self.upcoming + self.recent
        out: Dict[str, Tuple[str, ...]] = {}
        for c in items:
            acts = allowed_actions(c, self.session)
            if acts:
                out[c.challenge_id] = acts
        return out

    def _replace_upcoming(self, updated: Challenge) -> None:
        with self._lock:
            self.upcoming = [updated if c.challenge_id == updated.challenge_id else c for c in self.upcoming]

    def _remove_upcoming(self, challenge_id: str) -> None:
        with self._lock:
            self.upcoming = [c for c in self.upcoming if c.challenge_id != challenge_id]

    def accept(self, challenge_id: str) -> bool:
        """Accept a pending challenge. Returns False (with an alert) if the backend refused."""
        challenge = self.find(challenge_id)
        try:
            updated = self.lifecycle.accept(challenge, self.session)
        except GatewayError as exc:
            self._alert("Error", exc)
            return False
        if self.token.alive:
            self._replace_upcoming(updated)
        return True

    def decline(self, challenge_id: str) -> bool:
        """Decline a pending challenge; it disappears from the upcoming list."""
        challenge = self.find(challenge_id)
        try:
            self.lifecycle.decline(challenge, self.session)
        except GatewayError as exc:
            self._alert("Error", exc)
            return False
        if self.token.alive:
            self._remove_upcoming(challenge_id)
        return True

    def record_outcome(self, challenge_id: str, score: str, winner_id: str) -> bool:
        """
        Record an outcome; the challenge moves from upcoming to the top of recent.

        ValidationError / EligibilityError propagate before any remote call.
        """
        challenge = self.find(challenge_id)
        try:
            updated = self.lifecycle.record_outcome(challenge, self.session, score, winner_id)
        except GatewayError as exc:
            self._alert("Error", exc)
            return False
        if self.token.alive:
            with self._lock:
                self.upcoming = [c for c in self.upcoming if c.challenge_id != challenge_id]
                self.recent = [updated] + [c for c in self.recent if c.challenge_id != challenge_id]
        # on_outcome touches shared caches only; it runs whether or not the screen is alive
        if self.on_outcome is not None:
            self.on_outcome(updated)
        return True

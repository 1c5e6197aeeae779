# vine_ladder/services/score_entry.py
"""
Score entry form for an accepted challenge.

The form captures a free-text score and one of the two sides as winner, and
submits both in a single call. While a submission is in flight the form
refuses another one. Success closes and clears the form; failure keeps the
entered values so the user can retry.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from ..errors import ValidationError
from ..models import Challenge
from .board import ChallengeBoard
from .lifecycle import RECORD_OUTCOME, ensure_allowed, validate_outcome


@dataclass
class ScoreEntryForm:
    board: ChallengeBoard
    challenge_id: str

    score: str = ""
    winner_id: Optional[str] = None
    is_open: bool = True
    error: Optional[str] = None

    _busy: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        ensure_allowed(RECORD_OUTCOME, self.challenge, self.board.session)

    @property
    def challenge(self) -> Challenge:
        return self.board.find(self.challenge_id)

    @property
    def submitting(self) -> bool:
        return self._busy.locked()

    def choices(self) -> List[Tuple[str, str]]:
        """The two (id, label) winner options: challenger/opponent or team 1/team 2."""
        c = self.challenge
        return [(pid, c.label_for(pid)) for pid in c.participants]

    def select_winner(self, winner_id: str) -> None:
        if winner_id not in self.challenge.participants:
            raise ValidationError("The winner must be one of the two sides of this challenge.")
        self.winner_id = winner_id

    def set_score(self, score: str) -> None:
        self.score = score

    def clear(self) -> None:
        self.score = ""
        self.winner_id = None
        self.error = None

    def close(self) -> None:
        self.clear()
        self.is_open = False

    def submit(self) -> bool:
        """
        Submit the score and winner.

        Raises:
            ValidationError when the form is closed, already submitting, or
            missing a score or winner. No remote call is made in those cases.

        Returns:
            True on success (form closed and cleared), False when the backend
            rejected the call (form stays open with its values).
        """
        if not self.is_open:
            raise ValidationError("This form is closed.")
        validate_outcome(self.challenge, self.score, self.winner_id or "")
        if not self._busy.acquire(blocking=False):
            raise ValidationError("A submission is already in progress.")
        try:
            ok = self.board.record_outcome(self.challenge_id, self.score, self.winner_id or "")
        finally:
            self._busy.release()

        if ok:
            self.close()
            return True
        alerts = self.board.alerts
        self.error = alerts[-1].message if alerts else "Failed to record the outcome."
        return False

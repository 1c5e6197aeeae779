# vine_ladder/services/lifecycle.py
"""
Challenge lifecycle.

States:
  pending  -> accepted | declined
  accepted -> completed
  declined, completed are terminal

Eligibility checks here are advisory; the backend procedures enforce the real rules.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

from ..errors import EligibilityError, GatewayError, ValidationError
from ..models import Challenge, ChallengeStatus, SessionContext
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

ACCEPT = "accept"
DECLINE = "decline"
RECORD_OUTCOME = "record_outcome"

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    ChallengeStatus.PENDING: frozenset({ChallengeStatus.ACCEPTED, ChallengeStatus.DECLINED}),
    ChallengeStatus.ACCEPTED: frozenset({ChallengeStatus.COMPLETED}),
    ChallengeStatus.DECLINED: frozenset(),
    ChallengeStatus.COMPLETED: frozenset(),
}


ACTION_TARGETS: Dict[str, str] = {
    ACCEPT: ChallengeStatus.ACCEPTED,
    DECLINE: ChallengeStatus.DECLINED,
    RECORD_OUTCOME: ChallengeStatus.COMPLETED,
}


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in TRANSITIONS.get(ChallengeStatus.normalize(from_status), frozenset())


def _on_team(session: SessionContext, team_id: str, member_ids: Tuple[str, ...]) -> bool:
    return session.user_id in member_ids or team_id in session.team_ids


def is_responder(challenge: Challenge, session: SessionContext) -> bool:
    """True if the viewer is the challenged side (the opponent, or a member of team 2)."""
    if challenge.is_doubles:
        return _on_team(session, challenge.team_2_id, challenge.team_2_member_ids)
    return session.user_id == challenge.opponent_id


def is_participant(challenge: Challenge, session: SessionContext) -> bool:
    """True if the viewer plays in the challenge on either side."""
    if challenge.is_doubles:
        return _on_team(session, challenge.team_1_id, challenge.team_1_member_ids) or _on_team(
            session, challenge.team_2_id, challenge.team_2_member_ids
        )
    return session.user_id in (challenge.challenger_id, challenge.opponent_id)


def _eligible(action: str, challenge: Challenge, session: SessionContext) -> bool:
    if action == RECORD_OUTCOME:
        return is_participant(challenge, session)
    return is_responder(challenge, session)


def allowed_actions(challenge: Challenge, session: SessionContext) -> Tuple[str, ...]:
    """Return the actions the viewer may take on a challenge, in display order."""
    return tuple(
        action
        for action in (ACCEPT, DECLINE, RECORD_OUTCOME)
        if can_transition(challenge.status, ACTION_TARGETS[action]) and _eligible(action, challenge, session)
    )


def ensure_allowed(action: str, challenge: Challenge, session: SessionContext) -> None:
    """Raise EligibilityError unless the viewer may perform action right now."""
    if action not in ACTION_TARGETS:
        raise ValueError(f"unknown challenge action: {action!r}")
    label = action.replace("_", " ")
    if not can_transition(challenge.status, ACTION_TARGETS[action]):
        raise EligibilityError(
            f"Cannot {label} challenge {challenge.challenge_id} (status={challenge.status})"
        )
    if not _eligible(action, challenge, session):
        raise EligibilityError(f"You are not allowed to {label} challenge {challenge.challenge_id}")


def validate_outcome(challenge: Challenge, score: str, winner_id: str) -> str:
    """
    Check the score/winner pair for a challenge and return the trimmed score.

    The score is free text; only emptiness is checked.
    """
    cleaned = (score or "").strip()
    if not cleaned or not winner_id:
        raise ValidationError("Please enter a score and select a winner.")
    if winner_id not in challenge.participants:
        raise ValidationError("The winner must be one of the two sides of this challenge.")
    return cleaned


@dataclass
class LifecycleService:
    """Runs challenge transitions against the backend and returns the patched challenge."""

    client: SupabaseClient

    def accept(self, challenge: Challenge, session: SessionContext) -> Challenge:
        ensure_allowed(ACCEPT, challenge, session)
        self.client.accept_challenge(challenge.challenge_id, session.user_id)
        logger.info("Challenge %s accepted by %s", challenge.challenge_id, session.user_id)
        return challenge.with_changes(status=ChallengeStatus.ACCEPTED)

    def decline(self, challenge: Challenge, session: SessionContext) -> Challenge:
        ensure_allowed(DECLINE, challenge, session)
        rows = self.client.update(
            "flowers",
            {"status": ChallengeStatus.DECLINED},
            {"flower_id": challenge.challenge_id, "status": ChallengeStatus.PENDING},
        )
        if not rows:
            raise GatewayError("Challenge is no longer pending", status_code=409)
        logger.info("Challenge %s declined by %s", challenge.challenge_id, session.user_id)
        return challenge.with_changes(status=ChallengeStatus.DECLINED)

    def record_outcome(
        self,
        challenge: Challenge,
        session: SessionContext,
        score: str,
        winner_id: str,
    ) -> Challenge:
        """
        Record the winner and score of an accepted challenge.

        Input is validated before eligibility so a blank form never reaches the backend.
        """
        cleaned = validate_outcome(challenge, score, winner_id)
        ensure_allowed(RECORD_OUTCOME, challenge, session)
        self.client.record_challenge_outcome(
            challenge.challenge_id, winner_id, challenge.loser_for(winner_id), session.user_id, cleaned
        )
        logger.info(
            "Challenge %s completed by %s (winner=%s)", challenge.challenge_id, session.user_id, winner_id
        )
        return challenge.with_changes(status=ChallengeStatus.COMPLETED, score=cleaned, winner_id=winner_id)

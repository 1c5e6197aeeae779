# vine_ladder/handlers/board_handler.py
"""
Handler/controller responsible for building the challenge board view model.

Keeps Flask routes simple by concentrating assembly logic here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dateutil import tz

from ..errors import GatewayError
from ..models import Alert, BoardViewModel, ScreenToken, SessionContext
from ..services.board import ChallengeBoard
from ..services.challenge_service import ChallengeService
from ..services.lifecycle import LifecycleService
from ..services.standings_service import StandingsService


@dataclass
class BoardHandler:
    """Orchestrates challenge, lifecycle and standings services for one viewer."""

    challenge_service: ChallengeService
    lifecycle_service: LifecycleService
    standings_service: StandingsService
    tz_name: str

    @property
    def app_tz(self):
        """Return the configured timezone object used for display timestamps."""
        return tz.gettz(self.tz_name)

    def open_board(
        self,
        ladder_id: str,
        session: SessionContext,
        token: Optional[ScreenToken] = None,
    ) -> ChallengeBoard:
        """
        Create and load a board for a ladder.

        Recording an outcome drops cached standings so the next read reflects it.
        """
        board = ChallengeBoard(
            ladder_id=ladder_id,
            session=session,
            challenges=self.challenge_service,
            lifecycle=self.lifecycle_service,
            token=token or ScreenToken(),
            on_outcome=lambda _c: self.standings_service.invalidate(),
        )
        return board.load()

    def build(
        self,
        board: ChallengeBoard,
        limit_upcoming: int,
        limit_recent: int,
        include_standings: bool,
        vine_id: Optional[str] = None,
        kind: str = "teams",
        order: str = "roster",
    ) -> BoardViewModel:
        """
        Build a board view model from an already loaded board.

        Args:
            board: loaded ChallengeBoard.
            limit_upcoming: number of upcoming challenges to include.
            limit_recent: number of recent challenges to include.
            include_standings: whether to include standings (needs vine_id).
            vine_id: vine whose standings are shown.
            kind: "teams" or "players".
            order: roster ordering for standings.

        Returns:
            BoardViewModel ready for serialization.
        """
        now = datetime.now(tz=self.app_tz)
        upcoming = list(board.upcoming[: max(0, limit_upcoming)])
        recent = list(board.recent[: max(0, limit_recent)])
        shown = {c.challenge_id for c in upcoming + recent}
        actions = {cid: acts for cid, acts in board.actions().items() if cid in shown}
        alerts = list(board.alerts)

        standings = None
        if include_standings and vine_id:
            try:
                standings = self.standings_service.get(vine_id, kind=kind, order=order)
            except GatewayError as exc:
                alerts.append(Alert(title="Standings unavailable", message=exc.message))
                standings = []

        return BoardViewModel(
            now=now,
            ladder_id=board.ladder_id,
            upcoming=upcoming,
            recent=recent,
            actions=actions,
            alerts=alerts,
            standings=standings,
            standings_kind=kind if standings is not None else None,
        )

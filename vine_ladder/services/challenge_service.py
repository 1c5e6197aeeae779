# vine_ladder/services/challenge_service.py
"""
Challenge fetch + enrichment.

Responsibilities:
  - fetch challenge rows for a ladder (history or upcoming)
  - normalize rows into Challenge models
  - resolve team member rosters for doubles challenges
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import GatewayError
from ..models import Challenge, ChallengeStatus
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

CHALLENGE_COLUMNS = (
    "*,"
    "challenger:profiles!challenger_id(name),"
    "opponent:profiles!opponent_id(name),"
    "team_1:teams!team_1_id(name),"
    "team_2:teams!team_2_id(name)"
)

_COMPLETED_FILTER = ("in", [ChallengeStatus.COMPLETED, "complete"])
_UPCOMING_FILTER = ("in", list(ChallengeStatus.UPCOMING))

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

Roster = Tuple[Tuple[str, ...], Tuple[str, ...]]  # (member ids, member names)


def sort_by_date(challenges: Sequence[Challenge], newest_first: bool) -> List[Challenge]:
    """Sort challenges by date; undated challenges always go last."""
    dated = [c for c in challenges if c.date is not None]
    undated = [c for c in challenges if c.date is None]
    dated.sort(key=lambda c: c.date or _EPOCH, reverse=newest_first)
    return dated + undated


@dataclass
class ChallengeService:
    """Service responsible for returning enriched challenge lists."""

    client: SupabaseClient
    workers: int = 4

    def _rows_to_challenges(self, rows: Sequence[Dict[str, Any]]) -> List[Challenge]:
        """Convert raw rows, skipping rows that break the singles/doubles invariant."""
        out: List[Challenge] = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            try:
                out.append(Challenge.from_row(row))
            except ValueError as exc:
                logger.warning("Skipping malformed challenge row: %s", exc)
        return out

    def _team_roster(self, team_id: str) -> Roster:
        """Return (member ids, member names) for a team. Raises GatewayError."""
        rows = self.client.select("team_members", "user_id, profiles(name)", {"team_id": team_id})
        ids: List[str] = []
        names: List[str] = []
        for m in rows:
            uid = m.get("user_id")
            if not uid:
                continue
            profile = m.get("profiles")
            if isinstance(profile, list):
                profile = profile[0] if profile else None
            name = profile.get("name") if isinstance(profile, dict) else None
            ids.append(str(uid))
            names.append(name.strip() if isinstance(name, str) and name.strip() else "Unknown")
        return tuple(ids), tuple(names)

    def _safe_team_roster(self, challenge_id: str, team_id: str) -> Roster:
        """Roster lookup that degrades to empty lists on failure (no retry)."""
        try:
            return self._team_roster(team_id)
        except GatewayError as exc:
            logger.info("Roster lookup for team %s (challenge %s) failed: %s", team_id, challenge_id, exc)
            return (), ()

    def enrich(self, challenges: Sequence[Challenge]) -> List[Challenge]:
        """
        Attach team member ids and names to every doubles challenge.

        Two lookups per doubles row, run concurrently. A failed lookup leaves that
        team's member fields empty and never drops the row.
        """
        doubles = [c for c in challenges if c.is_doubles]
        if not doubles:
            return list(challenges)

        with ThreadPoolExecutor(max_workers=max(1, self.workers)) as pool:
            futures = {
                c.challenge_id: (
                    pool.submit(self._safe_team_roster, c.challenge_id, c.team_1_id),
                    pool.submit(self._safe_team_roster, c.challenge_id, c.team_2_id),
                )
                for c in doubles
            }
            rosters = {cid: (f1.result(), f2.result()) for cid, (f1, f2) in futures.items()}

        out: List[Challenge] = []
        for c in challenges:
            if c.challenge_id not in rosters:
                out.append(c)
                continue
            (ids_1, names_1), (ids_2, names_2) = rosters[c.challenge_id]
            out.append(
                c.with_changes(
                    team_1_member_ids=ids_1,
                    team_1_members=names_1,
                    team_2_member_ids=ids_2,
                    team_2_members=names_2,
                )
            )
        return out

    def fetch(self, ladder_id: str, completed: bool) -> List[Challenge]:
        """
        Return enriched challenges for a ladder.

        completed=True  -> history, newest first
        completed=False -> pending + accepted, soonest first

        Raises:
            GatewayError if the primary query fails.
        """
        rows = self.client.select(
            "flowers",
            CHALLENGE_COLUMNS,
            filters={
                "ladder_id": ladder_id,
                "status": _COMPLETED_FILTER if completed else _UPCOMING_FILTER,
            },
            order="date",
            ascending=not completed,
        )
        challenges = sort_by_date(self._rows_to_challenges(rows), newest_first=completed)
        return self.enrich(challenges)

    def fetch_for_user(
        self,
        user_id: str,
        team_ids: Iterable[str],
        completed: bool,
        ladder_id: Optional[str] = None,
    ) -> List[Challenge]:
        """
        Return a viewer's own challenges across ladders (or within one ladder).

        Singles rows where the user is challenger or opponent, and doubles rows
        where one of the user's teams plays.
        """
        status = _COMPLETED_FILTER if completed else _UPCOMING_FILTER
        teams = sorted({t for t in team_ids if t})

        queries: List[Dict[str, Any]] = [
            {"challenger_id": user_id},
            {"opponent_id": user_id},
        ]
        if teams:
            queries.append({"team_1_id": ("in", teams)})
            queries.append({"team_2_id": ("in", teams)})

        def run(extra: Dict[str, Any]) -> List[Dict[str, Any]]:
            filters: Dict[str, Any] = {"status": status, **extra}
            if ladder_id:
                filters["ladder_id"] = ladder_id
            return self.client.select(
                "flowers", CHALLENGE_COLUMNS, filters=filters, order="date", ascending=not completed
            )

        with ThreadPoolExecutor(max_workers=max(1, min(self.workers, len(queries)))) as pool:
            results = list(pool.map(run, queries))

        seen: set[str] = set()
        merged: List[Challenge] = []
        for rows in results:
            for c in self._rows_to_challenges(rows):
                if c.challenge_id not in seen:
                    seen.add(c.challenge_id)
                    merged.append(c)

        return self.enrich(sort_by_date(merged, newest_first=completed))

# vine_ladder/models.py
"""
Domain models for the ladder client.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple

from dateutil import parser as date_parser


class ChallengeStatus:
    """Status values a challenge moves through."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    COMPLETED = "completed"

    ALL = (PENDING, ACCEPTED, DECLINED, COMPLETED)
    UPCOMING = (PENDING, ACCEPTED)
    TERMINAL = (DECLINED, COMPLETED)

    @classmethod
    def normalize(cls, raw: Any) -> str:
        """Lowercase a status and map the older "complete" spelling to "completed"."""
        s = str(raw or "").strip().lower()
        if s == "complete":
            return cls.COMPLETED
        return s


def parse_timestamp(val: Any) -> Optional[datetime]:
    """Parse an ISO timestamp into an aware datetime (UTC if no offset); None on failure."""
    if not val:
        return None
    if isinstance(val, datetime):
        dt = val
    else:
        try:
            dt = date_parser.isoparse(str(val))
        except (ValueError, OverflowError):
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _name(embedded: Any) -> str:
    """Read the name from an embedded relation ({"name": ...} or [{"name": ...}])."""
    if isinstance(embedded, list):
        embedded = embedded[0] if embedded else None
    if isinstance(embedded, dict):
        val = embedded.get("name")
        if isinstance(val, str) and val.strip():
            return val.strip()
    return ""


@dataclass(frozen=True)
class Challenge:
    """
    A single contest between two players (singles) or two teams (doubles).

    Exactly one of the pairs (challenger_id, opponent_id) and
    (team_1_id, team_2_id) is populated.
    """
    challenge_id: str
    status: str
    ladder_id: Optional[str] = None
    vine_id: Optional[str] = None
    challenger_id: Optional[str] = None
    opponent_id: Optional[str] = None
    team_1_id: Optional[str] = None
    team_2_id: Optional[str] = None
    date: Optional[datetime] = None
    score: str = ""
    winner_id: Optional[str] = None

    # Display fields filled in by enrichment
    challenger_name: str = ""
    opponent_name: str = ""
    team_1_name: str = ""
    team_2_name: str = ""
    team_1_members: Tuple[str, ...] = ()
    team_2_members: Tuple[str, ...] = ()
    team_1_member_ids: Tuple[str, ...] = ()
    team_2_member_ids: Tuple[str, ...] = ()

    def __post_init__(self):
        singles = bool(self.challenger_id and self.opponent_id)
        doubles = bool(self.team_1_id and self.team_2_id)
        mixed = bool(self.challenger_id or self.opponent_id) and bool(self.team_1_id or self.team_2_id)
        if singles == doubles or mixed:
            raise ValueError(
                f"challenge {self.challenge_id} must have exactly one of "
                "challenger/opponent or team_1/team_2"
            )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Challenge":
        """
        Build a Challenge from a raw `flowers` row.

        Embedded relations (challenger/opponent/team_1/team_2) supply display names.
        The winner comes from `winner_id` or the JSON `result` column.
        """
        result = row.get("result") if isinstance(row.get("result"), dict) else {}
        winner = row.get("winner_id") or result.get("winner_id")
        return cls(
            challenge_id=str(row.get("flower_id") or row.get("challenge_id") or row.get("id") or ""),
            status=ChallengeStatus.normalize(row.get("status")),
            ladder_id=row.get("ladder_id"),
            vine_id=row.get("vine_id"),
            challenger_id=row.get("challenger_id") or None,
            opponent_id=row.get("opponent_id") or None,
            team_1_id=row.get("team_1_id") or None,
            team_2_id=row.get("team_2_id") or None,
            date=parse_timestamp(row.get("date")),
            score=str(row.get("score") or ""),
            winner_id=str(winner) if winner else None,
            challenger_name=_name(row.get("challenger")),
            opponent_name=_name(row.get("opponent")),
            team_1_name=_name(row.get("team_1")),
            team_2_name=_name(row.get("team_2")),
        )

    @property
    def is_doubles(self) -> bool:
        return bool(self.team_1_id and self.team_2_id)

    @property
    def participants(self) -> Tuple[str, str]:
        """The two ids a winner can be chosen from (players for singles, teams for doubles)."""
        if self.is_doubles:
            return (self.team_1_id, self.team_2_id)
        return (self.challenger_id, self.opponent_id)

    def label_for(self, side_id: str) -> str:
        """Display label for one of the two participants."""
        if self.is_doubles:
            if side_id == self.team_1_id:
                return self.team_1_name or "Unknown Team"
            if side_id == self.team_2_id:
                return self.team_2_name or "Unknown Team"
        else:
            if side_id == self.challenger_id:
                return self.challenger_name or "Unknown Player"
            if side_id == self.opponent_id:
                return self.opponent_name or "Unknown Player"
        return side_id

    def loser_for(self, winner_id: str) -> str:
        """Return the other participant; raises ValueError if winner_id is not a participant."""
        a, b = self.participants
        if winner_id == a:
            return b
        if winner_id == b:
            return a
        raise ValueError(f"{winner_id} is not a participant of challenge {self.challenge_id}")

    def with_changes(self, **changes) -> "Challenge":
        return replace(self, **changes)


@dataclass(frozen=True)
class RosterEntry:
    """A player or team as listed on a roster, for display only."""
    id: str
    name: str
    members: Tuple[str, ...] = ()
    position: Optional[int] = None


@dataclass(frozen=True)
class StandingRecord:
    """Aggregated wins/losses/points keyed by player/team id or name."""
    key: str
    wins: int = 0
    losses: int = 0
    points: int = 0


@dataclass(frozen=True)
class StandingsRow:
    """A merged, display-ready standings row."""
    id: str
    name: str
    wins: int
    losses: int
    points: int
    members: Tuple[str, ...] = ()
    position: Optional[int] = None


@dataclass(frozen=True)
class Announcement:
    """A coordinator message targeted at everyone, one player or one team."""
    message_id: str
    sender_id: Optional[str]
    target_type: str
    target_id: Optional[str]
    ladder_id: Optional[str]
    content: str
    created_at: Optional[datetime]

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Announcement":
        return cls(
            message_id=str(row.get("message_id") or row.get("id") or ""),
            sender_id=row.get("sender_id"),
            target_type=str(row.get("target_type") or "all").lower(),
            target_id=row.get("target_id"),
            ladder_id=row.get("ladder_id"),
            content=str(row.get("content") or ""),
            created_at=parse_timestamp(row.get("created_at")),
        )


@dataclass(frozen=True)
class Team:
    """A doubles team: a captain plus up to a few members, scoped to a vine."""
    team_id: str
    name: str
    vine_id: Optional[str] = None
    ladder_id: Optional[str] = None
    captain_id: Optional[str] = None
    member_ids: Tuple[str, ...] = ()
    member_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Ladder:
    ladder_id: str
    name: str
    type: str
    description: str = ""


@dataclass(frozen=True)
class Season:
    season_id: str
    name: str
    ladder_id: Optional[str]
    start_date: Optional[date]
    end_date: Optional[date]
    description: str = ""
    is_active: bool = False
    ladder_name: str = ""


@dataclass(frozen=True)
class Alert:
    """A user-visible message produced when an action fails."""
    title: str
    message: str


@dataclass(frozen=True)
class SessionContext:
    """
    Read-only identity for one screen: resolved once, then passed explicitly.
    """
    user_id: str
    team_ids: FrozenSet[str] = frozenset()
    roles: FrozenSet[str] = frozenset()
    is_coordinator: bool = False


@dataclass
class ScreenToken:
    """
    Liveness token for one screen mount.

    Asynchronous work checks `alive` right before applying its result, so
    responses that arrive after the screen is dismissed are dropped.
    """
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def alive(self) -> bool:
        return not self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()


@dataclass(frozen=True)
class BoardViewModel:
    """All data needed to render a ladder's challenge board."""
    now: datetime
    ladder_id: str
    upcoming: Sequence[Challenge]
    recent: Sequence[Challenge]
    actions: Dict[str, Tuple[str, ...]]
    alerts: Sequence[Alert] = ()
    standings: Optional[Sequence[StandingsRow]] = None
    standings_kind: Optional[str] = None

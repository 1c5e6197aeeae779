# vine_ladder/services/standings_service.py
"""
Standings logic.

Responsibilities:
  - fetch team/player rosters and aggregated records
  - merge records onto rosters (missing records count as 0-0, 0 points)
  - order rows by roster order, name or ladder position
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from ..cache import TTLCache
from ..errors import GatewayError
from ..models import RosterEntry, StandingRecord, StandingsRow
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

ROSTER_ORDERS = ("roster", "name", "position")


def safe_int(v, default=0) -> int:
    """Convert a value to int safely; return default on failures."""
    try:
        return int(v)
    except Exception:
        return default


def merge_standings(
    roster: Iterable[RosterEntry],
    records: Iterable[StandingRecord],
    key: str = "id",
) -> List[StandingsRow]:
    """
    Merge aggregated records onto a roster.

    Every roster entry appears exactly once, in roster order. Entries without a
    record get (0, 0, 0). Records without a roster entry are ignored.

    Args:
        roster: players or teams, already in display order.
        records: aggregates keyed by the same id or name.
        key: "id" or "name", the roster attribute records are matched on.
    """
    if key not in ("id", "name"):
        raise ValueError(f"unsupported merge key: {key!r}")

    by_key: Dict[str, StandingRecord] = {}
    for rec in records:
        by_key.setdefault(rec.key, rec)

    seen: set[str] = set()
    out: List[StandingsRow] = []
    for entry in roster:
        if entry.id in seen:
            continue
        seen.add(entry.id)
        rec = by_key.get(getattr(entry, key))
        out.append(
            StandingsRow(
                id=entry.id,
                name=entry.name,
                wins=rec.wins if rec else 0,
                losses=rec.losses if rec else 0,
                points=rec.points if rec else 0,
                members=entry.members,
                position=entry.position,
            )
        )
    return out


def sort_roster(roster: Sequence[RosterEntry], order: str = "roster") -> List[RosterEntry]:
    """
    Return the roster in the requested order.

    "roster" keeps the given order, "name" sorts case-insensitively,
    "position" sorts by ladder position with unplaced entries last.
    """
    if order == "name":
        return sorted(roster, key=lambda e: (e.name.lower(), e.id))
    if order == "position":
        return sorted(roster, key=lambda e: (e.position is None, e.position or 0))
    if order != "roster":
        raise ValueError(f"unsupported roster order: {order!r}")
    return list(roster)


@dataclass
class StandingsService:
    """Service responsible for returning merged standings rows."""

    client: SupabaseClient
    cache: TTLCache
    standings_ttl: int
    roster_ttl: int

    # -------------------------
    # Loaders
    # -------------------------

    def _positions(self, table: str, id_column: str, vine_id: str) -> Dict[str, int]:
        """Ladder positions keyed by id; a failed lookup degrades to no positions."""
        try:
            rows = self.client.select(table, f"{id_column}, position", {"vine_id": vine_id})
        except GatewayError as exc:
            logger.info("Positions lookup on %s for vine %s failed: %s", table, vine_id, exc)
            return {}
        out: Dict[str, int] = {}
        for r in rows:
            rid = r.get(id_column)
            if rid and r.get("position") is not None:
                out[str(rid)] = safe_int(r.get("position"))
        return out

    def _team_members(self, team_ids: List[str]) -> Dict[str, List[str]]:
        """Member names per team; a failed lookup degrades to no members."""
        if not team_ids:
            return {}
        try:
            rows = self.client.select("team_members", "team_id, profiles(name)", {"team_id": ("in", team_ids)})
        except GatewayError as exc:
            logger.info("Team member lookup failed: %s", exc)
            return {}
        out: Dict[str, List[str]] = {}
        for r in rows:
            profile = r.get("profiles")
            if isinstance(profile, list):
                profile = profile[0] if profile else None
            name = profile.get("name") if isinstance(profile, dict) else None
            out.setdefault(str(r.get("team_id")), []).append(name or "Unknown")
        return out

    def _load_team_roster(self, vine_id: str) -> List[RosterEntry]:
        rows = self.client.select("teams", "team_id, name", {"vine_id": vine_id}, order="name")
        ids = [str(r["team_id"]) for r in rows if r.get("team_id")]
        members = self._team_members(ids)
        positions = self._positions("user_ladder_nodes", "team_id", vine_id)
        return [
            RosterEntry(
                id=str(r["team_id"]),
                name=(r.get("name") or r.get("team_name") or "Unknown Team"),
                members=tuple(members.get(str(r["team_id"]), ())),
                position=positions.get(str(r["team_id"])),
            )
            for r in rows
            if r.get("team_id")
        ]

    def _load_team_records(self, team_ids: List[str]) -> List[StandingRecord]:
        if not team_ids:
            return []
        rows = self.client.select(
            "team_standings",
            "team_id, wins, losses, total_points",
            {"team_id": ("in", team_ids)},
        )
        return [
            StandingRecord(
                key=str(r["team_id"]),
                wins=safe_int(r.get("wins")),
                losses=safe_int(r.get("losses")),
                points=safe_int(r.get("total_points")),
            )
            for r in rows
            if r.get("team_id")
        ]

    def _load_player_roster(self, vine_id: str) -> List[RosterEntry]:
        rows = self.client.select("profiles", "id, user_id, name", {"vine_id": vine_id}, order="name")
        positions = self._positions("ladder_nodes", "profile_id", vine_id)
        return [
            RosterEntry(
                id=str(r.get("user_id") or r.get("id")),
                name=(r.get("name") or "Unknown"),
                position=positions.get(str(r.get("id"))),
            )
            for r in rows
            if r.get("user_id") or r.get("id")
        ]

    def _load_player_records(self) -> List[StandingRecord]:
        # individual_standings carries no player id; records are keyed by name
        rows = self.client.select("individual_standings", "name, wins, losses, points")
        return [
            StandingRecord(
                key=str(r["name"]),
                wins=safe_int(r.get("wins")),
                losses=safe_int(r.get("losses")),
                points=safe_int(r.get("points")),
            )
            for r in rows
            if r.get("name")
        ]

    # -------------------------
    # Public API
    # -------------------------

    def team_standings(self, vine_id: str, order: str = "roster") -> List[StandingsRow]:
        """Return merged team standings for a vine."""
        roster = self.cache.get_or_set(
            key=f"standings:roster:teams:{vine_id}",
            ttl_seconds=self.roster_ttl,
            loader=lambda: self._load_team_roster(vine_id),
        )
        ids = [e.id for e in roster]
        records = self.cache.get_or_set(
            key=f"standings:records:teams:{vine_id}",
            ttl_seconds=self.standings_ttl,
            loader=lambda: self._load_team_records(ids),
        )
        return merge_standings(sort_roster(roster, order), records, key="id")

    def player_standings(self, vine_id: str, order: str = "roster") -> List[StandingsRow]:
        """Return merged individual standings for a vine."""
        roster = self.cache.get_or_set(
            key=f"standings:roster:players:{vine_id}",
            ttl_seconds=self.roster_ttl,
            loader=lambda: self._load_player_roster(vine_id),
        )
        records = self.cache.get_or_set(
            key="standings:records:players",
            ttl_seconds=self.standings_ttl,
            loader=self._load_player_records,
        )
        return merge_standings(sort_roster(roster, order), records, key="name")

    def get(self, vine_id: str, kind: str = "teams", order: str = "roster") -> List[StandingsRow]:
        if kind == "players":
            return self.player_standings(vine_id, order)
        if kind == "teams":
            return self.team_standings(vine_id, order)
        raise ValueError(f"unsupported standings kind: {kind!r}")

    def invalidate(self, vine_id: Optional[str] = None) -> None:
        """Drop cached records (all vines when vine_id is None) so the next read refetches."""
        if vine_id is None:
            self.cache.invalidate("standings:records:")
            return
        self.cache.invalidate(f"standings:records:teams:{vine_id}")
        self.cache.invalidate("standings:records:players")

    def invalidate_rosters(self, vine_id: Optional[str] = None) -> None:
        """Drop cached team rosters (and their records) after a team changes."""
        if vine_id is None:
            self.cache.invalidate("standings:roster:teams:")
            self.cache.invalidate("standings:records:teams:")
            return
        self.cache.invalidate(f"standings:roster:teams:{vine_id}")
        self.cache.invalidate(f"standings:records:teams:{vine_id}")

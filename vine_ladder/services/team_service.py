# vine_ladder/services/team_service.py
"""
Team management.

Responsibilities:
  - create a team with its captain and teammates (plus an empty standings row)
  - rename a team, add and remove members
  - keep one team per player within a vine

Only the captain or a coordinator may change an existing team.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..errors import EligibilityError, NotFoundError, ValidationError
from ..models import SessionContext, Team
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

MAX_TEAM_SIZE = 4


def _unique(ids: Iterable[Any]) -> List[str]:
    out: List[str] = []
    for raw in ids:
        uid = str(raw or "").strip()
        if uid and uid not in out:
            out.append(uid)
    return out


def _member_name(row: Dict[str, Any]) -> str:
    profile = row.get("profiles")
    if isinstance(profile, list):
        profile = profile[0] if profile else None
    name = profile.get("name") if isinstance(profile, dict) else None
    return name or "Unknown"


def _require_manager(session: SessionContext, team: Team) -> None:
    if not (session.is_coordinator or session.user_id == team.captain_id):
        raise EligibilityError("Only the team captain or a coordinator can edit this team.")


@dataclass
class TeamService:
    client: SupabaseClient

    # -------------------------
    # Reads
    # -------------------------

    def get_team(self, team_id: str) -> Team:
        rows = self.client.select("teams", "*", {"team_id": team_id})
        if not rows:
            raise NotFoundError(f"Team {team_id} not found.")
        row = rows[0]
        members = self.client.select("team_members", "user_id, profiles(name)", {"team_id": team_id})
        return Team(
            team_id=str(row.get("team_id") or team_id),
            name=str(row.get("name") or row.get("team_name") or ""),
            vine_id=row.get("vine_id"),
            ladder_id=row.get("ladder_id"),
            captain_id=row.get("captain_id"),
            member_ids=tuple(str(m["user_id"]) for m in members if m.get("user_id")),
            member_names=tuple(_member_name(m) for m in members if m.get("user_id")),
        )

    def _taken(self, vine_id: Optional[str], user_ids: List[str], exclude_team: Optional[str] = None) -> List[str]:
        """Users among user_ids already on another team in the vine."""
        if not vine_id or not user_ids:
            return []
        team_ids = [
            str(r["team_id"])
            for r in self.client.select("teams", "team_id", {"vine_id": vine_id})
            if r.get("team_id") and str(r["team_id"]) != exclude_team
        ]
        if not team_ids:
            return []
        rows = self.client.select(
            "team_members",
            "user_id",
            {"team_id": ("in", team_ids), "user_id": ("in", user_ids)},
        )
        return _unique(r.get("user_id") for r in rows)

    # -------------------------
    # Writes
    # -------------------------

    def create_team(
        self,
        session: SessionContext,
        name: str,
        vine_id: str,
        member_ids: Iterable[str] = (),
        ladder_id: Optional[str] = None,
    ) -> Team:
        """
        Create a team captained by the caller.

        The caller is always a member. At least one teammate is required and the
        team may not exceed MAX_TEAM_SIZE players. Names are unique per vine and
        no player may be on two teams in the same vine.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("Team name is required.")
        if not vine_id:
            raise ValidationError("vine_id is required.")
        members = _unique([session.user_id, *member_ids])
        if len(members) < 2:
            raise ValidationError("Please add at least one teammate.")
        if len(members) > MAX_TEAM_SIZE:
            raise ValidationError(f"Teams can have up to {MAX_TEAM_SIZE} players including you.")

        if self.client.select("teams", "team_id", {"vine_id": vine_id, "name": name}):
            raise ValidationError("A team with this name already exists.")
        if self._taken(vine_id, members):
            raise ValidationError("One or more teammates are already on a team.")

        values: Dict[str, Any] = {"name": name, "vine_id": vine_id, "captain_id": session.user_id}
        if ladder_id:
            values["ladder_id"] = ladder_id
        rows = self.client.insert("teams", values)
        team_id = str((rows[0] if rows else {}).get("team_id") or "")
        if not team_id:
            raise ValidationError("Failed to create team.")

        self.client.insert("team_members", [{"team_id": team_id, "user_id": uid} for uid in members])
        self.client.insert(
            "team_standings",
            {"team_id": team_id, "team_name": name, "wins": 0, "losses": 0, "total_points": 0},
        )
        logger.info("Team %r (%s) created by %s with %d members", name, team_id, session.user_id, len(members))
        return Team(
            team_id=team_id,
            name=name,
            vine_id=vine_id,
            ladder_id=ladder_id,
            captain_id=session.user_id,
            member_ids=tuple(members),
        )

    def rename_team(self, session: SessionContext, team_id: str, name: str) -> Team:
        team = self.get_team(team_id)
        _require_manager(session, team)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Team name cannot be empty.")
        self.client.update("teams", {"name": name}, {"team_id": team_id})
        self.client.update("team_standings", {"team_name": name}, {"team_id": team_id})
        return self.get_team(team_id)

    def add_member(self, session: SessionContext, team_id: str, user_id: str) -> Team:
        team = self.get_team(team_id)
        _require_manager(session, team)
        user_id = str(user_id or "").strip()
        if not user_id:
            raise ValidationError("Select a player to add.")
        if user_id in team.member_ids:
            raise ValidationError("That player is already on this team.")
        if len(team.member_ids) >= MAX_TEAM_SIZE:
            raise ValidationError(f"Teams can have up to {MAX_TEAM_SIZE} players.")
        if self._taken(team.vine_id, [user_id], exclude_team=team_id):
            raise ValidationError("That player is already on a team.")

        self.client.insert("team_members", {"team_id": team_id, "user_id": user_id})
        if team.vine_id:
            self.client.update("profiles", {"vine_id": team.vine_id}, {"user_id": user_id})
        logger.info("Player %s added to team %s by %s", user_id, team_id, session.user_id)
        return self.get_team(team_id)

    def remove_member(self, session: SessionContext, team_id: str, user_id: str) -> Team:
        team = self.get_team(team_id)
        _require_manager(session, team)
        if user_id not in team.member_ids:
            raise NotFoundError(f"Player {user_id} is not on team {team_id}.")
        if len(team.member_ids) <= 1:
            raise ValidationError("A team must have at least one member.")
        self.client.delete("team_members", {"team_id": team_id, "user_id": user_id})
        logger.info("Player %s removed from team %s by %s", user_id, team_id, session.user_id)
        return self.get_team(team_id)

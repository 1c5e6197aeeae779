# vine_ladder/services/session_service.py
"""
Session resolution: turn the current bearer session into a SessionContext once per screen.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, FrozenSet, List, Sequence

from ..errors import GatewayError
from ..models import SessionContext
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def _role_name(item: Any) -> str:
    """Role rows come back as {"role": {"name": ...}} or {"role": [{"name": ...}]}."""
    role = item.get("role") if isinstance(item, dict) else None
    if isinstance(role, list):
        role = role[0] if role else None
    if isinstance(role, dict):
        name = role.get("name")
        return name.strip() if isinstance(name, str) else ""
    return ""


@dataclass
class SessionService:
    coordinator_role_names: Sequence[str] = field(default_factory=lambda: ["coordinator"])

    def _team_ids(self, client: SupabaseClient, user_id: str) -> FrozenSet[str]:
        try:
            rows = client.select("team_members", "team_id", {"user_id": user_id})
        except GatewayError as exc:
            logger.info("Team membership lookup for %s failed: %s", user_id, exc)
            return frozenset()
        return frozenset(str(r["team_id"]) for r in rows if r.get("team_id"))

    def _roles(self, client: SupabaseClient, user_id: str) -> FrozenSet[str]:
        try:
            rows = client.select("user_roles", "role:role(name)", {"user_id": user_id})
        except GatewayError as exc:
            logger.info("Role lookup for %s failed: %s", user_id, exc)
            return frozenset()
        names: List[str] = [_role_name(r) for r in rows]
        return frozenset(n for n in names if n)

    def resolve(self, client: SupabaseClient) -> SessionContext:
        """
        Build the viewer's identity from the session bound to client.

        Raises:
            GatewayError if there is no valid session (the user lookup fails).
        """
        user = client.get_user()
        user_id = user.get("id")
        if not user_id:
            raise GatewayError("No authenticated user", status_code=401)
        user_id = str(user_id)

        roles = self._roles(client, user_id)
        wanted = {r.lower() for r in self.coordinator_role_names}
        return SessionContext(
            user_id=user_id,
            team_ids=self._team_ids(client, user_id),
            roles=roles,
            is_coordinator=any(r.lower() in wanted for r in roles),
        )

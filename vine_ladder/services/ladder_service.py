# vine_ladder/services/ladder_service.py
"""
Ladder and season management for coordinators.

Responsibilities:
  - list/create/update ladders
  - list/create/update/delete seasons
  - validate required fields and season dates before any remote call
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from ..errors import EligibilityError, ValidationError
from ..models import Ladder, Season, SessionContext
from ..supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def parse_day(val: Any) -> Optional[date]:
    """Parse a date-ish value (date, datetime or string); None when blank or invalid."""
    if val is None or val == "":
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    try:
        return date_parser.parse(str(val)).date()
    except (ValueError, OverflowError):
        return None


def _require_coordinator(session: SessionContext) -> None:
    if not session.is_coordinator:
        raise EligibilityError("Only coordinators can manage ladders and seasons.")


def _ladder_from_row(row: Dict[str, Any]) -> Ladder:
    return Ladder(
        ladder_id=str(row.get("ladder_id") or ""),
        name=str(row.get("name") or ""),
        type=str(row.get("type") or ""),
        description=str(row.get("description") or ""),
    )


def _season_from_row(row: Dict[str, Any]) -> Season:
    ladder = row.get("ladders")
    if isinstance(ladder, list):
        ladder = ladder[0] if ladder else None
    return Season(
        season_id=str(row.get("season_id") or ""),
        name=str(row.get("name") or ""),
        ladder_id=row.get("ladder_id"),
        start_date=parse_day(row.get("start_date")),
        end_date=parse_day(row.get("end_date")),
        description=str(row.get("description") or ""),
        is_active=bool(row.get("is_active")),
        ladder_name=(ladder.get("name") or "") if isinstance(ladder, dict) else "",
    )


@dataclass
class LadderService:
    client: SupabaseClient

    # -------------------------
    # Ladders
    # -------------------------

    def list_ladders(self) -> List[Ladder]:
        return [_ladder_from_row(r) for r in self.client.select("ladders", "*", order="name")]

    def _ladder_values(self, name: str, type: str, description: str) -> Dict[str, str]:
        name = (name or "").strip()
        type = (type or "").strip()
        if not name or not type:
            raise ValidationError("Name and type are required.")
        return {"name": name, "type": type, "description": (description or "").strip()}

    def create_ladder(self, session: SessionContext, name: str, type: str, description: str = "") -> Ladder:
        _require_coordinator(session)
        values = self._ladder_values(name, type, description)
        rows = self.client.insert("ladders", values)
        logger.info("Ladder %r created by %s", values["name"], session.user_id)
        return _ladder_from_row(rows[0] if rows else values)

    def update_ladder(
        self, session: SessionContext, ladder_id: str, name: str, type: str, description: str = ""
    ) -> Ladder:
        _require_coordinator(session)
        values = self._ladder_values(name, type, description)
        rows = self.client.update("ladders", values, {"ladder_id": ladder_id})
        return _ladder_from_row(rows[0] if rows else {"ladder_id": ladder_id, **values})

    # -------------------------
    # Seasons
    # -------------------------

    def list_seasons(self, ladder_id: Optional[str] = None) -> List[Season]:
        """Seasons newest first, with the ladder name joined in."""
        filters = {"ladder_id": ladder_id} if ladder_id else None
        rows = self.client.select(
            "seasons", "*, ladders(name)", filters=filters, order="start_date", ascending=False
        )
        return [_season_from_row(r) for r in rows]

    def _season_values(
        self,
        name: str,
        start_date: Any,
        end_date: Any,
        ladder_id: str,
        description: str,
    ) -> Dict[str, Any]:
        start = parse_day(start_date)
        end = parse_day(end_date)
        if not (name or "").strip() or not start or not end or not ladder_id:
            raise ValidationError("All fields are required.")
        if end < start:
            raise ValidationError("End date cannot be before start date.")
        return {
            "name": name.strip(),
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "ladder_id": ladder_id,
            "description": (description or "").strip(),
        }

    def create_season(
        self,
        session: SessionContext,
        name: str,
        start_date: Any,
        end_date: Any,
        ladder_id: str,
        description: str = "",
    ) -> Season:
        _require_coordinator(session)
        values = self._season_values(name, start_date, end_date, ladder_id, description)
        rows = self.client.insert("seasons", values)
        logger.info("Season %r created for ladder %s", values["name"], ladder_id)
        return _season_from_row(rows[0] if rows else values)

    def update_season(
        self,
        session: SessionContext,
        season_id: str,
        name: str,
        start_date: Any,
        end_date: Any,
        ladder_id: str,
        description: str = "",
        is_active: bool = False,
    ) -> Season:
        _require_coordinator(session)
        values = self._season_values(name, start_date, end_date, ladder_id, description)
        values["is_active"] = bool(is_active)
        rows = self.client.update("seasons", values, {"season_id": season_id})
        return _season_from_row(rows[0] if rows else {"season_id": season_id, **values})

    def delete_season(self, session: SessionContext, season_id: str) -> None:
        _require_coordinator(session)
        self.client.delete("seasons", {"season_id": season_id})
        logger.info("Season %s deleted by %s", season_id, session.user_id)

# app.py
"""
Flask entrypoint for the vine ladder service.

Routes (JSON):
  Challenges:
    - GET  /api/ladders/<ladder_id>/board
    - GET  /api/ladders/<ladder_id>/challenges?view=upcoming|recent
    - POST /api/challenges/<challenge_id>/accept
    - POST /api/challenges/<challenge_id>/decline
    - POST /api/challenges/<challenge_id>/outcome
    - GET  /api/me/challenges?view=upcoming|recent

  Standings:
    - GET  /api/vines/<vine_id>/standings

  Teams:
    - POST   /api/teams
    - GET|PATCH /api/teams/<team_id>
    - POST   /api/teams/<team_id>/members
    - DELETE /api/teams/<team_id>/members/<user_id>

  Coordinator:
    - GET|POST   /api/announcements
    - GET|POST   /api/ladders
    - PATCH      /api/ladders/<ladder_id>
    - GET|POST   /api/seasons
    - PATCH|DELETE /api/seasons/<season_id>

Query parameters (common):
  - upcoming=N, recent=N (board list limits)
  - standings=1|0 (include standings on the board)
  - vine=<vine_id> (standings scope for the board)
  - kind=teams|players
  - order=roster|name|position

Notes:
  - Every request carries the viewer's session as "Authorization: Bearer <token>".
  - The viewer's identity is resolved once per request and passed explicitly.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify, request

from vine_ladder.cache import TTLCache
from vine_ladder.config import AppConfig
from vine_ladder.errors import EligibilityError, GatewayError, NotFoundError, ValidationError
from vine_ladder.handlers.board_handler import BoardHandler
from vine_ladder.models import (
    Alert,
    Announcement,
    Challenge,
    Ladder,
    Season,
    SessionContext,
    StandingsRow,
    Team,
)
from vine_ladder.services.announcement_service import AnnouncementService
from vine_ladder.services.board import ChallengeBoard
from vine_ladder.services.challenge_service import ChallengeService
from vine_ladder.services.ladder_service import LadderService
from vine_ladder.services.lifecycle import LifecycleService, allowed_actions
from vine_ladder.services.score_entry import ScoreEntryForm
from vine_ladder.services.session_service import SessionService
from vine_ladder.services.standings_service import ROSTER_ORDERS, StandingsService
from vine_ladder.services.team_service import TeamService
from vine_ladder.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

STANDINGS_KINDS = ("teams", "players")


# -------------------------
# Serialization
# -------------------------

def challenge_to_dict(c: Challenge) -> Dict[str, Any]:
    """Serialize a Challenge model into JSON-safe primitives."""
    out: Dict[str, Any] = {
        "challenge_id": c.challenge_id,
        "ladder_id": c.ladder_id,
        "vine_id": c.vine_id,
        "match_type": "doubles" if c.is_doubles else "singles",
        "status": c.status,
        "date": c.date.isoformat() if c.date else None,
        "score": c.score,
        "winner_id": c.winner_id,
    }
    if c.is_doubles:
        out.update(
            {
                "team_1_id": c.team_1_id,
                "team_2_id": c.team_2_id,
                "team_1_name": c.team_1_name,
                "team_2_name": c.team_2_name,
                "team_1_members": list(c.team_1_members),
                "team_2_members": list(c.team_2_members),
                "team_1_member_ids": list(c.team_1_member_ids),
                "team_2_member_ids": list(c.team_2_member_ids),
            }
        )
    else:
        out.update(
            {
                "challenger_id": c.challenger_id,
                "opponent_id": c.opponent_id,
                "challenger_name": c.challenger_name,
                "opponent_name": c.opponent_name,
            }
        )
    return out


def standings_row_to_dict(s: StandingsRow) -> Dict[str, Any]:
    """Serialize a StandingsRow model into JSON-safe primitives."""
    return {
        "id": s.id,
        "name": s.name,
        "wins": s.wins,
        "losses": s.losses,
        "points": s.points,
        "members": list(s.members),
        "position": s.position,
    }


def announcement_to_dict(a: Announcement) -> Dict[str, Any]:
    return {
        "message_id": a.message_id,
        "sender_id": a.sender_id,
        "target_type": a.target_type,
        "target_id": a.target_id,
        "ladder_id": a.ladder_id,
        "content": a.content,
        "created_at": a.created_at.isoformat() if a.created_at else None,
    }


def ladder_to_dict(l: Ladder) -> Dict[str, Any]:
    return {"ladder_id": l.ladder_id, "name": l.name, "type": l.type, "description": l.description}


def season_to_dict(s: Season) -> Dict[str, Any]:
    return {
        "season_id": s.season_id,
        "name": s.name,
        "ladder_id": s.ladder_id,
        "ladder_name": s.ladder_name,
        "start_date": s.start_date.isoformat() if s.start_date else None,
        "end_date": s.end_date.isoformat() if s.end_date else None,
        "description": s.description,
        "is_active": s.is_active,
    }


def team_to_dict(t: Team) -> Dict[str, Any]:
    return {
        "team_id": t.team_id,
        "name": t.name,
        "vine_id": t.vine_id,
        "ladder_id": t.ladder_id,
        "captain_id": t.captain_id,
        "member_ids": list(t.member_ids),
        "members": list(t.member_names),
    }


def alert_to_dict(a: Alert) -> Dict[str, str]:
    return {"title": a.title, "message": a.message}


def board_lists(board: ChallengeBoard) -> Dict[str, Any]:
    return {
        "upcoming": [challenge_to_dict(c) for c in board.upcoming],
        "recent": [challenge_to_dict(c) for c in board.recent],
        "actions": {cid: list(acts) for cid, acts in board.actions().items()},
        "alerts": [alert_to_dict(a) for a in board.alerts],
    }


def create_app(
    cfg: Optional[AppConfig] = None,
    client: Optional[SupabaseClient] = None,
) -> Flask:
    """
    App factory.

    Builds shared dependencies (client + cache + services) once per process.
    A request-scoped client bound to the caller's bearer token is derived per request.
    """
    cfg = cfg or AppConfig()
    logging.basicConfig(
        level=getattr(logging, cfg.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cache = TTLCache()
    base_client = client or SupabaseClient(
        cfg.supabase_url,
        cfg.supabase_anon_key,
        timeout=cfg.request_timeout_seconds,
    )

    # Standings are shared across viewers; the cache is keyed by vine.
    standings = StandingsService(
        client=base_client,
        cache=cache,
        standings_ttl=cfg.standings_cache_ttl_seconds,
        roster_ttl=cfg.roster_cache_ttl_seconds,
    )
    sessions = SessionService(coordinator_role_names=cfg.coordinator_role_names)

    app = Flask(__name__)

    # -------------------------
    # Error mapping
    # -------------------------

    def error_response(message: str, status: int):
        return jsonify({"error": message, "alerts": [{"title": "Error", "message": message}]}), status

    @app.errorhandler(ValidationError)
    def handle_validation(exc: ValidationError):
        return error_response(str(exc), 400)

    @app.errorhandler(EligibilityError)
    def handle_eligibility(exc: EligibilityError):
        return error_response(str(exc), 403)

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc: NotFoundError):
        return error_response(str(exc), 404)

    @app.errorhandler(GatewayError)
    def handle_gateway(exc: GatewayError):
        status = exc.status_code if exc.status_code in (400, 401, 403, 404, 409) else 502
        return error_response(exc.message, status)

    # -------------------------
    # Per-request wiring
    # -------------------------

    def request_client() -> SupabaseClient:
        """Client bound to the caller's bearer token (or the anon client when absent)."""
        header = request.headers.get("Authorization", "")
        token = header[7:].strip() if header.lower().startswith("bearer ") else ""
        return base_client.with_token(token or None)

    def current_session(c: SupabaseClient) -> SessionContext:
        return sessions.resolve(c)

    def make_handler(c: SupabaseClient) -> BoardHandler:
        return BoardHandler(
            challenge_service=ChallengeService(client=c, workers=cfg.enrichment_workers),
            lifecycle_service=LifecycleService(client=c),
            standings_service=standings,
            tz_name=cfg.tz,
        )

    def with_viewer(fn: Callable[[SupabaseClient, SessionContext], Any]):
        c = request_client()
        return fn(c, current_session(c))

    # -------------------------
    # Shared parsing helpers
    # -------------------------

    def parse_int(name: str, default: int) -> int:
        """Parse an integer query param with default fallback."""
        try:
            return int(request.args.get(name, default))
        except Exception:
            return default

    def parse_bool(name: str, default: bool = True) -> bool:
        """
        Parse a boolean-ish query param.

        Treats these as false: 0, false, no, off
        """
        raw = request.args.get(name)
        if raw is None:
            return default
        return raw.strip().lower() not in ("0", "false", "no", "off")

    def parse_kind() -> str:
        kind = (request.args.get("kind") or "teams").strip().lower()
        return kind if kind in STANDINGS_KINDS else "teams"

    def parse_order() -> str:
        order = (request.args.get("order") or "roster").strip().lower()
        return order if order in ROSTER_ORDERS else "roster"

    def body() -> Dict[str, Any]:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else {}

    def body_ladder_id() -> str:
        ladder_id = str(body().get("ladder_id") or request.args.get("ladder") or "").strip()
        if not ladder_id:
            raise ValidationError("ladder_id is required.")
        return ladder_id

    # -------------------------
    # Challenge routes
    # -------------------------

    @app.get("/api/ladders/<ladder_id>/board")
    def api_board(ladder_id: str):
        """
        Full board JSON payload (upcoming + recent + actions + optional standings).

        Query:
          - upcoming=N
          - recent=N
          - standings=1|0
          - vine=<vine_id>
          - kind=teams|players
          - order=roster|name|position
        """
        def run(c: SupabaseClient, viewer: SessionContext):
            handler = make_handler(c)
            board = handler.open_board(ladder_id, viewer)
            vm = handler.build(
                board,
                limit_upcoming=parse_int("upcoming", cfg.limit_upcoming),
                limit_recent=parse_int("recent", cfg.limit_recent),
                include_standings=parse_bool("standings", cfg.include_standings),
                vine_id=request.args.get("vine"),
                kind=parse_kind(),
                order=parse_order(),
            )
            out: Dict[str, Any] = {
                "generatedAt": vm.now.isoformat(),
                "ladder": vm.ladder_id,
                "viewer": viewer.user_id,
                "upcoming": [challenge_to_dict(c) for c in vm.upcoming],
                "recent": [challenge_to_dict(c) for c in vm.recent],
                "actions": {cid: list(acts) for cid, acts in vm.actions.items()},
                "alerts": [alert_to_dict(a) for a in vm.alerts],
            }
            if vm.standings is not None:
                out["standingsKind"] = vm.standings_kind
                out["standings"] = [standings_row_to_dict(s) for s in vm.standings]
            return jsonify(out)

        return with_viewer(run)

    @app.get("/api/ladders/<ladder_id>/challenges")
    def api_challenges(ladder_id: str):
        """
        One challenge list for a ladder.

        Query:
          - view=upcoming|recent
        """
        view = (request.args.get("view") or "upcoming").strip().lower()
        completed = view == "recent"

        def run(c: SupabaseClient, viewer: SessionContext):
            items = ChallengeService(client=c, workers=cfg.enrichment_workers).fetch(ladder_id, completed=completed)
            return jsonify(
                {
                    "ladder": ladder_id,
                    "view": "recent" if completed else "upcoming",
                    "challenges": [challenge_to_dict(x) for x in items],
                }
            )

        return with_viewer(run)

    @app.get("/api/me/challenges")
    def api_my_challenges():
        """
        The viewer's own challenges (singles as player, doubles through their teams).

        Query:
          - view=upcoming|recent
          - ladder=<ladder_id> (optional scope)
        """
        view = (request.args.get("view") or "upcoming").strip().lower()
        completed = view == "recent"

        def run(c: SupabaseClient, viewer: SessionContext):
            items = ChallengeService(client=c, workers=cfg.enrichment_workers).fetch_for_user(
                viewer.user_id,
                viewer.team_ids,
                completed=completed,
                ladder_id=request.args.get("ladder") or None,
            )
            actions = {x.challenge_id: list(allowed_actions(x, viewer)) for x in items}
            return jsonify(
                {
                    "viewer": viewer.user_id,
                    "view": "recent" if completed else "upcoming",
                    "challenges": [challenge_to_dict(x) for x in items],
                    "actions": {cid: acts for cid, acts in actions.items() if acts},
                }
            )

        return with_viewer(run)

    def transition(challenge_id: str, apply: Callable[[ChallengeBoard], bool]):
        """Open the board named in the body, apply a transition, and report the new lists."""
        ladder_id = body_ladder_id()

        def run(c: SupabaseClient, viewer: SessionContext):
            board = make_handler(c).open_board(ladder_id, viewer)
            ok = apply(board)
            payload = {"ok": ok, **board_lists(board)}
            return jsonify(payload), (200 if ok else 502)

        return with_viewer(run)

    @app.post("/api/challenges/<challenge_id>/accept")
    def api_accept(challenge_id: str):
        return transition(challenge_id, lambda b: b.accept(challenge_id))

    @app.post("/api/challenges/<challenge_id>/decline")
    def api_decline(challenge_id: str):
        return transition(challenge_id, lambda b: b.decline(challenge_id))

    @app.post("/api/challenges/<challenge_id>/outcome")
    def api_outcome(challenge_id: str):
        """
        Record an outcome.

        Body:
          - ladder_id
          - score (free text, non-empty)
          - winner_id (challenger/opponent id, or team_1/team_2 id)
        """
        data = body()

        def apply(board: ChallengeBoard) -> bool:
            form = ScoreEntryForm(board=board, challenge_id=challenge_id)
            form.set_score(str(data.get("score") or ""))
            if data.get("winner_id"):
                form.select_winner(str(data["winner_id"]))
            return form.submit()

        return transition(challenge_id, apply)

    # -------------------------
    # Standings
    # -------------------------

    @app.get("/api/vines/<vine_id>/standings")
    def api_standings(vine_id: str):
        """
        Merged standings for a vine.

        Query:
          - kind=teams|players
          - order=roster|name|position
        """
        kind = parse_kind()
        rows = standings.get(vine_id, kind=kind, order=parse_order())
        return jsonify(
            {
                "vine": vine_id,
                "kind": kind,
                "standings": [standings_row_to_dict(s) for s in rows],
            }
        )

    # -------------------------
    # Teams
    # -------------------------

    def team_changed(team: Team, status: int = 200):
        standings.invalidate_rosters(team.vine_id)
        return jsonify(team_to_dict(team)), status

    @app.post("/api/teams")
    def api_create_team():
        """
        Create a team captained by the viewer.

        Body:
          - name
          - vine_id
          - member_ids (teammates, the viewer is added automatically)
          - ladder_id (optional)
        """
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            members = data.get("member_ids") or []
            team = TeamService(client=c).create_team(
                viewer,
                name=str(data.get("name") or ""),
                vine_id=str(data.get("vine_id") or ""),
                member_ids=[str(m) for m in members] if isinstance(members, list) else [],
                ladder_id=data.get("ladder_id") or None,
            )
            return team_changed(team, 201)

        return with_viewer(run)

    @app.get("/api/teams/<team_id>")
    def api_team(team_id: str):
        team = TeamService(client=request_client()).get_team(team_id)
        return jsonify(team_to_dict(team))

    @app.patch("/api/teams/<team_id>")
    def api_rename_team(team_id: str):
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            return team_changed(TeamService(client=c).rename_team(viewer, team_id, str(data.get("name") or "")))

        return with_viewer(run)

    @app.post("/api/teams/<team_id>/members")
    def api_add_member(team_id: str):
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            team = TeamService(client=c).add_member(viewer, team_id, str(data.get("user_id") or ""))
            return team_changed(team, 201)

        return with_viewer(run)

    @app.delete("/api/teams/<team_id>/members/<user_id>")
    def api_remove_member(team_id: str, user_id: str):
        def run(c: SupabaseClient, viewer: SessionContext):
            return team_changed(TeamService(client=c).remove_member(viewer, team_id, user_id))

        return with_viewer(run)

    # -------------------------
    # Announcements
    # -------------------------

    @app.get("/api/announcements")
    def api_announcements():
        """Announcements addressed to the viewer; optional ?ladder=<id> scope."""
        def run(c: SupabaseClient, viewer: SessionContext):
            items = AnnouncementService(client=c).fetch_for_viewer(viewer, ladder_id=request.args.get("ladder"))
            return jsonify({"announcements": [announcement_to_dict(a) for a in items]})

        return with_viewer(run)

    @app.post("/api/announcements")
    def api_send_announcement():
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            sent = AnnouncementService(client=c).send(
                viewer,
                content=str(data.get("content") or ""),
                target_type=str(data.get("target_type") or "all"),
                target_id=data.get("target_id"),
                ladder_id=data.get("ladder_id"),
            )
            return jsonify(announcement_to_dict(sent)), 201

        return with_viewer(run)

    # -------------------------
    # Ladders & seasons
    # -------------------------

    @app.get("/api/ladders")
    def api_ladders():
        ladders = LadderService(client=request_client()).list_ladders()
        return jsonify({"ladders": [ladder_to_dict(l) for l in ladders]})

    @app.post("/api/ladders")
    def api_create_ladder():
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            ladder = LadderService(client=c).create_ladder(
                viewer, data.get("name") or "", data.get("type") or "", data.get("description") or ""
            )
            return jsonify(ladder_to_dict(ladder)), 201

        return with_viewer(run)

    @app.patch("/api/ladders/<ladder_id>")
    def api_update_ladder(ladder_id: str):
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            ladder = LadderService(client=c).update_ladder(
                viewer, ladder_id, data.get("name") or "", data.get("type") or "", data.get("description") or ""
            )
            return jsonify(ladder_to_dict(ladder))

        return with_viewer(run)

    @app.get("/api/seasons")
    def api_seasons():
        seasons = LadderService(client=request_client()).list_seasons(ladder_id=request.args.get("ladder"))
        return jsonify({"seasons": [season_to_dict(s) for s in seasons]})

    @app.post("/api/seasons")
    def api_create_season():
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            season = LadderService(client=c).create_season(
                viewer,
                name=data.get("name") or "",
                start_date=data.get("start_date"),
                end_date=data.get("end_date"),
                ladder_id=data.get("ladder_id") or "",
                description=data.get("description") or "",
            )
            return jsonify(season_to_dict(season)), 201

        return with_viewer(run)

    @app.patch("/api/seasons/<season_id>")
    def api_update_season(season_id: str):
        data = body()

        def run(c: SupabaseClient, viewer: SessionContext):
            season = LadderService(client=c).update_season(
                viewer,
                season_id,
                name=data.get("name") or "",
                start_date=data.get("start_date"),
                end_date=data.get("end_date"),
                ladder_id=data.get("ladder_id") or "",
                description=data.get("description") or "",
                is_active=bool(data.get("is_active")),
            )
            return jsonify(season_to_dict(season))

        return with_viewer(run)

    @app.delete("/api/seasons/<season_id>")
    def api_delete_season(season_id: str):
        def run(c: SupabaseClient, viewer: SessionContext):
            LadderService(client=c).delete_season(viewer, season_id)
            return "", 204

        return with_viewer(run)

    # -------------------------
    # Health
    # -------------------------

    @app.get("/health")
    def health():
        """Simple health endpoint for Docker/monitoring checks."""
        return {"ok": True}

    return app


# WSGI entrypoint for gunicorn (app:app)
app = create_app()

if __name__ == "__main__":
    # Dev server (not for production).
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "8000")), debug=True)

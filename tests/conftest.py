"""
Shared pytest fixtures.

The backend is replaced by FakeClient, an in-memory table store with the same
surface as SupabaseClient (select/insert/update/delete/rpc/auth).
"""

import copy
import threading

import pytest

from vine_ladder.cache import TTLCache
from vine_ladder.errors import GatewayError
from vine_ladder.models import SessionContext
from vine_ladder.services.challenge_service import ChallengeService
from vine_ladder.services.lifecycle import LifecycleService
from vine_ladder.services.standings_service import StandingsService


_ID_COLUMNS = {"teams": "team_id"}


def _matches(row, filters):
    for col, val in (filters or {}).items():
        if isinstance(val, tuple) and len(val) == 2:
            op, arg = val
            if op == "in":
                if str(row.get(col)) not in {str(a) for a in arg}:
                    return False
                continue
            if op == "is":
                if row.get(col) is not None:
                    return False
                continue
            raise AssertionError(f"unsupported op {op}")
        if str(row.get(col)) != str(val):
            return False
    return True


class FakeClient:
    """In-memory stand-in for SupabaseClient."""

    def __init__(self, tables=None, user=None):
        self.tables = copy.deepcopy(tables or {})
        self.user = user or {}
        self.token = None
        self.calls = []
        self._failures = []
        self._lock = threading.Lock()

    # -- test helpers --

    def fail(self, op, name, when=None, message="boom", status_code=500):
        """Make op on table/procedure `name` raise GatewayError (optionally only when(filters))."""
        self._failures.append((op, name, when, GatewayError(message, status_code=status_code)))

    def calls_for(self, op, name=None):
        return [c for c in self.calls if c[0] == op and (name is None or c[1] == name)]

    def _record(self, op, name, args):
        with self._lock:
            self.calls.append((op, name, args))
        for f_op, f_name, when, err in self._failures:
            if f_op == op and f_name == name and (when is None or when(args)):
                raise err

    # -- client surface --

    def with_token(self, token):
        self.token = token
        return self

    def select(self, table, columns="*", filters=None, order=None, ascending=True, single=False):
        self._record("select", table, dict(filters or {}))
        with self._lock:
            rows = [copy.deepcopy(r) for r in self.tables.get(table, []) if _matches(r, filters)]
        if order:
            present = [r for r in rows if r.get(order) is not None]
            missing = [r for r in rows if r.get(order) is None]
            present.sort(key=lambda r: r[order], reverse=not ascending)
            rows = present + missing
        if single:
            return rows[0] if rows else {}
        return rows

    def insert(self, table, rows):
        self._record("insert", table, rows)
        items = rows if isinstance(rows, list) else [rows]
        out = []
        with self._lock:
            store = self.tables.setdefault(table, [])
            for item in items:
                row = dict(item)
                row.setdefault(_ID_COLUMNS.get(table, "id"), f"{table}-{len(store) + 1}")
                store.append(row)
                out.append(copy.deepcopy(row))
        return out

    def update(self, table, values, filters):
        self._record("update", table, {"values": values, "filters": dict(filters)})
        out = []
        with self._lock:
            for row in self.tables.get(table, []):
                if _matches(row, filters):
                    row.update(values)
                    out.append(copy.deepcopy(row))
        return out

    def delete(self, table, filters):
        self._record("delete", table, dict(filters))
        with self._lock:
            self.tables[table] = [r for r in self.tables.get(table, []) if not _matches(r, filters)]

    def rpc(self, name, params=None):
        self._record("rpc", name, dict(params or {}))
        return None

    def accept_challenge(self, challenge_id, user_id):
        self.rpc("accept_challenge", {"challenge_id": challenge_id, "user_id": user_id})
        self.update("flowers", {"status": "accepted"}, {"flower_id": challenge_id})

    def record_challenge_outcome(self, challenge_id, winner_id, loser_id, user_id, score):
        self.rpc(
            "record_challenge_outcome",
            {"challenge_id": challenge_id, "winner_id": winner_id, "loser_id": loser_id,
             "user_id": user_id, "score": score},
        )
        self.update("flowers", {"status": "completed", "winner_id": winner_id, "score": score},
                    {"flower_id": challenge_id})

    def get_user(self):
        self._record("auth", "user", {})
        return dict(self.user)


def _member(team_id, user_id, name):
    return {"team_id": team_id, "user_id": user_id, "profiles": {"name": name}}


def sample_tables():
    return {
        "profiles": [
            {"id": "p1", "user_id": "u1", "name": "Alice", "vine_id": "v1"},
            {"id": "p2", "user_id": "u2", "name": "Bob", "vine_id": "v1"},
            {"id": "p3", "user_id": "u3", "name": "Cara", "vine_id": "v1"},
            {"id": "p4", "user_id": "u4", "name": "Dan", "vine_id": "v1"},
        ],
        "teams": [
            {"team_id": "t1", "name": "Aces", "vine_id": "v1", "captain_id": "u1"},
            {"team_id": "t2", "name": "Bangers", "vine_id": "v1", "captain_id": "u2"},
            {"team_id": "t3", "name": "Newbies", "vine_id": "v1"},
        ],
        "team_members": [
            _member("t1", "u1", "Alice"),
            _member("t1", "u3", "Cara"),
            _member("t2", "u2", "Bob"),
            _member("t2", "u4", "Dan"),
        ],
        "flowers": [
            {
                "flower_id": "f1", "ladder_id": "L1", "vine_id": "v1", "status": "pending",
                "challenger_id": "u1", "opponent_id": "u2", "date": "2026-11-01T18:00:00Z",
                "challenger": {"name": "Alice"}, "opponent": {"name": "Bob"},
            },
            {
                "flower_id": "f2", "ladder_id": "L1", "vine_id": "v1", "status": "accepted",
                "team_1_id": "t1", "team_2_id": "t2", "date": "2026-10-25T18:00:00Z",
                "team_1": {"name": "Aces"}, "team_2": {"name": "Bangers"},
            },
            {
                "flower_id": "f3", "ladder_id": "L1", "vine_id": "v1", "status": "complete",
                "challenger_id": "u2", "opponent_id": "u1", "date": "2026-09-01T18:00:00Z",
                "score": "11-8", "result": {"winner_id": "u2", "loser_id": "u1"},
                "challenger": {"name": "Bob"}, "opponent": {"name": "Alice"},
            },
            {
                "flower_id": "f4", "ladder_id": "L1", "vine_id": "v1", "status": "completed",
                "team_1_id": "t2", "team_2_id": "t1", "date": "2026-09-15T18:00:00Z",
                "score": "11-9, 11-7", "winner_id": "t1",
                "team_1": {"name": "Bangers"}, "team_2": {"name": "Aces"},
            },
            {
                "flower_id": "f5", "ladder_id": "L1", "vine_id": "v1", "status": "declined",
                "challenger_id": "u3", "opponent_id": "u4", "date": "2026-10-01T18:00:00Z",
            },
            {
                "flower_id": "f6", "ladder_id": "L2", "vine_id": "v1", "status": "pending",
                "challenger_id": "u3", "opponent_id": "u1", "date": "2026-10-20T18:00:00Z",
            },
        ],
        "team_standings": [
            {"team_id": "t1", "team_name": "Aces", "wins": 3, "losses": 1, "total_points": 9},
            {"team_id": "t2", "team_name": "Bangers", "wins": 1, "losses": 3, "total_points": 3},
            {"team_id": "t99", "team_name": "Ghosts", "wins": 5, "losses": 0, "total_points": 15},
        ],
        "individual_standings": [
            {"name": "Alice", "wins": 2, "losses": 1, "points": 6},
            {"name": "Bob", "wins": 1, "losses": 2, "points": 3},
            {"name": "Ghost", "wins": 9, "losses": 9, "points": 27},
        ],
        "user_ladder_nodes": [
            {"team_id": "t2", "position": 1, "vine_id": "v1"},
            {"team_id": "t1", "position": 2, "vine_id": "v1"},
        ],
        "ladder_nodes": [
            {"profile_id": "p2", "position": 1, "vine_id": "v1"},
            {"profile_id": "p1", "position": 2, "vine_id": "v1"},
        ],
        "messages": [
            {"message_id": "m1", "target_type": "all", "content": "Welcome", "created_at": "2026-10-01T10:00:00Z"},
            {"message_id": "m2", "target_type": "player", "target_id": "u1", "content": "Hi Alice",
             "created_at": "2026-10-02T10:00:00Z"},
            {"message_id": "m3", "target_type": "player", "target_id": "u2", "content": "Hi Bob",
             "created_at": "2026-10-03T10:00:00Z"},
            {"message_id": "m4", "target_type": "team", "target_id": "t1", "content": "Aces practice",
             "created_at": "2026-10-04T10:00:00Z"},
            {"message_id": "m5", "target_type": "team", "target_id": "t2", "content": "Bangers practice",
             "created_at": "2026-10-05T10:00:00Z"},
            {"message_id": "m6", "target_type": "all", "ladder_id": "L2", "content": "L2 only",
             "created_at": "2026-10-06T10:00:00Z"},
        ],
        "ladders": [
            {"ladder_id": "L1", "name": "Doubles", "type": "doubles", "description": ""},
            {"ladder_id": "L2", "name": "Singles", "type": "singles", "description": ""},
        ],
        "seasons": [
            {"season_id": "s1", "name": "Spring", "ladder_id": "L1", "start_date": "2026-03-01",
             "end_date": "2026-05-31", "is_active": False, "ladders": {"name": "Doubles"}},
            {"season_id": "s2", "name": "Fall", "ladder_id": "L1", "start_date": "2026-09-01",
             "end_date": "2026-11-30", "is_active": True, "ladders": {"name": "Doubles"}},
        ],
        "user_roles": [
            {"user_id": "u9", "role": {"name": "Coordinator"}},
            {"user_id": "u1", "role": {"name": "Player"}},
        ],
    }


@pytest.fixture
def client():
    return FakeClient(sample_tables(), user={"id": "u1"})


@pytest.fixture
def alice():
    return SessionContext(user_id="u1", team_ids=frozenset({"t1"}))


@pytest.fixture
def bob():
    return SessionContext(user_id="u2", team_ids=frozenset({"t2"}))


@pytest.fixture
def cara():
    return SessionContext(user_id="u3", team_ids=frozenset({"t1"}))


@pytest.fixture
def coordinator():
    return SessionContext(
        user_id="u9", roles=frozenset({"Coordinator"}), is_coordinator=True
    )


@pytest.fixture
def challenge_service(client):
    return ChallengeService(client=client, workers=2)


@pytest.fixture
def lifecycle_service(client):
    return LifecycleService(client=client)


@pytest.fixture
def standings_service(client):
    return StandingsService(client=client, cache=TTLCache(), standings_ttl=60, roster_ttl=300)

"""
Tests for challenge fetch + enrichment.
"""

import pytest

from vine_ladder.errors import GatewayError


def ids(challenges):
    return [c.challenge_id for c in challenges]


class TestFetch:
    def test_upcoming_is_pending_and_accepted_soonest_first(self, challenge_service):
        upcoming = challenge_service.fetch("L1", completed=False)
        assert ids(upcoming) == ["f2", "f1"]

    def test_recent_is_completed_newest_first(self, challenge_service):
        recent = challenge_service.fetch("L1", completed=True)
        assert ids(recent) == ["f4", "f3"]
        assert all(c.status == "completed" for c in recent)

    def test_scoped_to_ladder(self, challenge_service):
        assert "f6" not in ids(challenge_service.fetch("L1", completed=False))
        assert ids(challenge_service.fetch("L2", completed=False)) == ["f6"]

    def test_doubles_rows_get_member_rosters(self, challenge_service):
        f2 = challenge_service.fetch("L1", completed=False)[0]
        assert f2.team_1_name == "Aces"
        assert f2.team_1_members == ("Alice", "Cara")
        assert f2.team_1_member_ids == ("u1", "u3")
        assert f2.team_2_members == ("Bob", "Dan")
        assert f2.team_2_member_ids == ("u2", "u4")

    def test_two_lookups_per_doubles_row(self, client, challenge_service):
        challenge_service.fetch("L1", completed=False)
        lookups = client.calls_for("select", "team_members")
        assert sorted(c[2]["team_id"] for c in lookups) == ["t1", "t2"]

    def test_singles_rows_skip_lookups(self, client, challenge_service):
        challenge_service.fetch("L2", completed=False)
        assert client.calls_for("select", "team_members") == []

    def test_primary_failure_raises(self, client, challenge_service):
        client.fail("select", "flowers")
        with pytest.raises(GatewayError):
            challenge_service.fetch("L1", completed=False)

    def test_member_lookup_failure_degrades_only_that_team(self, client, challenge_service):
        client.fail("select", "team_members", when=lambda f: f.get("team_id") == "t2")
        f2 = challenge_service.fetch("L1", completed=False)[0]
        assert f2.challenge_id == "f2"
        assert f2.team_1_members == ("Alice", "Cara")
        assert f2.team_2_members == ()
        assert f2.team_2_member_ids == ()

    def test_malformed_rows_are_skipped(self, client, challenge_service):
        client.tables["flowers"].append({
            "flower_id": "bad", "ladder_id": "L1", "status": "pending",
            "challenger_id": "u1", "opponent_id": "u2", "team_1_id": "t1", "team_2_id": "t2",
        })
        assert "bad" not in ids(challenge_service.fetch("L1", completed=False))

    def test_missing_profile_name_is_unknown(self, client, challenge_service):
        client.tables["team_members"].append({"team_id": "t2", "user_id": "u5", "profiles": None})
        f2 = challenge_service.fetch("L1", completed=False)[0]
        assert f2.team_2_members == ("Bob", "Dan", "Unknown")


class TestFetchForUser:
    def test_singles_and_team_history(self, challenge_service):
        recent = challenge_service.fetch_for_user("u1", {"t1"}, completed=True)
        assert ids(recent) == ["f4", "f3"]

    def test_upcoming_across_ladders(self, challenge_service):
        upcoming = challenge_service.fetch_for_user("u1", {"t1"}, completed=False)
        assert ids(upcoming) == ["f6", "f2", "f1"]

    def test_without_teams_only_singles(self, client, challenge_service):
        upcoming = challenge_service.fetch_for_user("u1", [], completed=False, ladder_id="L1")
        assert ids(upcoming) == ["f1"]
        assert client.calls_for("select", "team_members") == []

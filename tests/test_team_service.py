"""
Tests for team management: creation rules, captain/coordinator edits and
one team per player within a vine.
"""

import pytest

from vine_ladder.errors import EligibilityError, NotFoundError, ValidationError
from vine_ladder.models import SessionContext
from vine_ladder.services.team_service import MAX_TEAM_SIZE, TeamService


@pytest.fixture
def service(client):
    return TeamService(client=client)


@pytest.fixture
def newcomer():
    return SessionContext(user_id="u5")


def members_of(client, team_id):
    return [r["user_id"] for r in client.tables["team_members"] if r["team_id"] == team_id]


class TestCreate:
    def test_creates_team_members_and_empty_standings(self, client, service, newcomer):
        team = service.create_team(newcomer, " Smash ", "v1", member_ids=["u6", "u6", ""], ladder_id="L1")
        assert team.name == "Smash"
        assert team.captain_id == "u5"
        assert team.member_ids == ("u5", "u6")
        assert members_of(client, team.team_id) == ["u5", "u6"]
        standings = [r for r in client.tables["team_standings"] if r["team_id"] == team.team_id]
        assert standings == [
            {"team_id": team.team_id, "team_name": "Smash", "wins": 0, "losses": 0, "total_points": 0,
             "id": "team_standings-4"},
        ]

    @pytest.mark.parametrize("name,members", [
        ("", ["u6"]),
        ("   ", ["u6"]),
        ("Smash", []),
        ("Smash", ["u5"]),
        ("Smash", [f"x{i}" for i in range(MAX_TEAM_SIZE)]),
    ])
    def test_rejects_bad_input_before_any_write(self, client, service, newcomer, name, members):
        with pytest.raises(ValidationError):
            service.create_team(newcomer, name, "v1", member_ids=members)
        assert client.calls_for("insert") == []

    def test_name_unique_within_vine(self, client, service, newcomer):
        with pytest.raises(ValidationError, match="already exists"):
            service.create_team(newcomer, "Aces", "v1", member_ids=["u6"])
        assert client.calls_for("insert") == []

    def test_teammate_already_on_a_team(self, client, service, newcomer):
        with pytest.raises(ValidationError, match="already on a team"):
            service.create_team(newcomer, "Smash", "v1", member_ids=["u1"])
        assert client.calls_for("insert") == []

    def test_same_players_allowed_in_another_vine(self, service, alice):
        team = service.create_team(alice, "Aces", "v2", member_ids=["u3"])
        assert team.vine_id == "v2"


class TestEdit:
    def test_get_team(self, service):
        team = service.get_team("t1")
        assert team.member_ids == ("u1", "u3")
        assert team.member_names == ("Alice", "Cara")

    def test_get_missing_team(self, service):
        with pytest.raises(NotFoundError):
            service.get_team("t42")

    def test_captain_renames(self, client, service, alice):
        team = service.rename_team(alice, "t1", " Aces High ")
        assert team.name == "Aces High"
        assert client.tables["team_standings"][0]["team_name"] == "Aces High"

    def test_coordinator_renames(self, service, coordinator):
        assert service.rename_team(coordinator, "t2", "B-Team").name == "B-Team"

    def test_other_player_cannot_rename(self, client, service, bob):
        with pytest.raises(EligibilityError):
            service.rename_team(bob, "t1", "Mine now")
        assert client.calls_for("update") == []

    def test_blank_rename_rejected(self, service, alice):
        with pytest.raises(ValidationError):
            service.rename_team(alice, "t1", "  ")

    def test_add_member_sets_vine_on_profile(self, client, service, alice):
        team = service.add_member(alice, "t1", "u5")
        assert team.member_ids == ("u1", "u3", "u5")
        profile_update = client.calls_for("update", "profiles")[0][2]
        assert profile_update == {"values": {"vine_id": "v1"}, "filters": {"user_id": "u5"}}

    @pytest.mark.parametrize("user_id", ["u3", "u2", ""])
    def test_add_member_rejects_existing_or_taken(self, client, service, alice, user_id):
        with pytest.raises(ValidationError):
            service.add_member(alice, "t1", user_id)
        assert client.calls_for("insert") == []

    def test_team_size_limit(self, service, alice):
        service.add_member(alice, "t1", "u5")
        service.add_member(alice, "t1", "u6")
        with pytest.raises(ValidationError, match=str(MAX_TEAM_SIZE)):
            service.add_member(alice, "t1", "u7")

    def test_remove_member(self, client, service, alice):
        team = service.remove_member(alice, "t1", "u3")
        assert team.member_ids == ("u1",)
        assert members_of(client, "t1") == ["u1"]

    def test_remove_non_member(self, service, alice):
        with pytest.raises(NotFoundError):
            service.remove_member(alice, "t1", "u2")

    def test_last_member_stays(self, service, alice):
        service.remove_member(alice, "t1", "u3")
        with pytest.raises(ValidationError):
            service.remove_member(alice, "t1", "u1")

"""
Tests for domain models: the singles/doubles invariant and row parsing.
"""

from datetime import timezone

import pytest

from vine_ladder.models import (
    Announcement,
    Challenge,
    ChallengeStatus,
    ScreenToken,
    parse_timestamp,
)


class TestChallengeInvariant:
    def test_singles_ok(self):
        c = Challenge(challenge_id="c1", status="pending", challenger_id="u1", opponent_id="u2")
        assert not c.is_doubles
        assert c.participants == ("u1", "u2")

    def test_doubles_ok(self):
        c = Challenge(challenge_id="c1", status="pending", team_1_id="t1", team_2_id="t2")
        assert c.is_doubles
        assert c.participants == ("t1", "t2")

    def test_both_pairs_rejected(self):
        with pytest.raises(ValueError):
            Challenge(
                challenge_id="c1", status="pending",
                challenger_id="u1", opponent_id="u2", team_1_id="t1", team_2_id="t2",
            )

    def test_neither_pair_rejected(self):
        with pytest.raises(ValueError):
            Challenge(challenge_id="c1", status="pending")

    def test_half_pair_rejected(self):
        with pytest.raises(ValueError):
            Challenge(challenge_id="c1", status="pending", challenger_id="u1")

    def test_singles_pair_with_stray_team_rejected(self):
        with pytest.raises(ValueError):
            Challenge.from_row({
                "flower_id": "f9", "status": "pending",
                "challenger_id": "a", "opponent_id": "b", "team_1_id": "t1",
            })

    def test_doubles_pair_with_stray_player_rejected(self):
        with pytest.raises(ValueError):
            Challenge(
                challenge_id="c1", status="pending",
                team_1_id="t1", team_2_id="t2", opponent_id="u2",
            )


class TestChallengeFromRow:
    def test_legacy_complete_status_and_result_winner(self):
        c = Challenge.from_row({
            "flower_id": "f3", "status": "complete", "challenger_id": "u2", "opponent_id": "u1",
            "score": "11-8", "result": {"winner_id": "u2", "loser_id": "u1"},
            "date": "2026-09-01T18:00:00Z", "challenger": {"name": "Bob"}, "opponent": [{"name": "Alice"}],
        })
        assert c.status == ChallengeStatus.COMPLETED
        assert c.winner_id == "u2"
        assert c.challenger_name == "Bob"
        assert c.opponent_name == "Alice"
        assert c.date.tzinfo is not None

    def test_loser_for(self):
        c = Challenge(challenge_id="c1", status="accepted", team_1_id="t1", team_2_id="t2")
        assert c.loser_for("t1") == "t2"
        assert c.loser_for("t2") == "t1"
        with pytest.raises(ValueError):
            c.loser_for("t3")

    def test_labels_fall_back_to_unknown(self):
        c = Challenge(challenge_id="c1", status="accepted", challenger_id="u1", opponent_id="u2")
        assert c.label_for("u1") == "Unknown Player"


def test_parse_timestamp_naive_is_utc():
    dt = parse_timestamp("2026-10-01T10:00:00")
    assert dt.tzinfo == timezone.utc


def test_parse_timestamp_garbage():
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None


def test_announcement_from_row_defaults():
    a = Announcement.from_row({"message_id": "m1", "content": "hi"})
    assert a.target_type == "all"
    assert a.created_at is None


def test_screen_token_cancel():
    token = ScreenToken()
    assert token.alive
    token.cancel()
    assert not token.alive

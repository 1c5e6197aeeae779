"""
Services package exports.
"""
from .announcement_service import AnnouncementService
from .board import ChallengeBoard
from .challenge_service import ChallengeService
from .ladder_service import LadderService
from .lifecycle import LifecycleService
from .score_entry import ScoreEntryForm
from .session_service import SessionService
from .standings_service import StandingsService, merge_standings
from .team_service import TeamService

__all__ = [
    "AnnouncementService",
    "ChallengeBoard",
    "ChallengeService",
    "LadderService",
    "LifecycleService",
    "ScoreEntryForm",
    "SessionService",
    "StandingsService",
    "TeamService",
    "merge_standings",
]

from courtside.models.court import Court
from courtside.models.match import Match
from courtside.models.match_duration_sample import MatchDurationSample
from courtside.models.player import Gender, Player
from courtside.models.priority_boost import PriorityBoost
from courtside.models.system_config import SystemConfig

__all__ = [
    "Court",
    "Gender",
    "Match",
    "MatchDurationSample",
    "Player",
    "PriorityBoost",
    "SystemConfig",
]

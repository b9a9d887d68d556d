# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from courtside.models.court import Court  # noqa: F401
from courtside.models.match import Match  # noqa: F401
from courtside.models.match_duration_sample import MatchDurationSample  # noqa: F401
from courtside.models.player import Player  # noqa: F401
from courtside.models.priority_boost import PriorityBoost  # noqa: F401
from courtside.models.system_config import SystemConfig  # noqa: F401

from datetime import datetime
from typing import List, Optional

from sqlmodel import Field, SQLModel

STATUS_WAITING = "waiting"
STATUS_CALLING = "calling"
STATUS_PLAYING = "playing"
STATUS_COMPLETED = "completed"

# Forward-only lifecycle; index order is the allowed direction
STATUS_ORDER = [STATUS_WAITING, STATUS_CALLING, STATUS_PLAYING, STATUS_COMPLETED]
ON_COURT_STATUSES = (STATUS_CALLING, STATUS_PLAYING)

PHASE_KNOCKOUT = "knockout"
PHASE_PRELIMINARY = "preliminary"

SIDE_SLOTS = {
    1: ("player1_id", "player3_id", "player5_id"),
    2: ("player2_id", "player4_id", "player6_id"),
}


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Category = tournament_type x division
    tournament_type: str = Field(index=True)
    division: int
    round: int
    match_number: int = Field(default=1)
    phase: str = Field(default=PHASE_KNOCKOUT)  # "knockout" | "preliminary"
    group_label: Optional[str] = Field(default=None)

    status: str = Field(default=STATUS_WAITING, index=True)  # waiting | calling | playing | completed
    court_id: Optional[int] = Field(default=None, foreign_key="court.id")

    # Side 1 = player1 (+ partner player3, third player5); side 2 = player2 (+ player4, player6)
    player1_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player3_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player4_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player5_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player6_id: Optional[int] = Field(default=None, foreign_key="player.id")
    seed_p1: Optional[int] = Field(default=None)
    seed_p2: Optional[int] = Field(default=None)

    # Bracket linkage: winner feeds next_match_id at side next_match_position (1 | 2)
    next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    next_match_position: Optional[int] = Field(default=None)
    # Semifinal losers drop into the third-place match the same way
    loser_next_match_id: Optional[int] = Field(default=None, foreign_key="match.id")
    loser_next_match_position: Optional[int] = Field(default=None)
    is_third_place: bool = Field(default=False)
    is_walkover: bool = Field(default=False)
    is_doubles: bool = Field(default=False)
    points_per_match: int = Field(default=15)

    score_p1: int = Field(default=0)
    score_p2: int = Field(default=0)
    winner_id: Optional[int] = Field(default=None, foreign_key="player.id")
    points_awarded: bool = Field(default=False)

    called_at: Optional[datetime] = Field(default=None)
    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def category(self) -> str:
        return f"{self.tournament_type}_{self.division}"

    def side_player_ids(self, side: int) -> List[int]:
        ids = (getattr(self, attr) for attr in SIDE_SLOTS[1 if side == 1 else 2])
        return [pid for pid in ids if pid is not None]

    def set_side(self, side: int, player_ids: List[int], seed: Optional[int] = None) -> None:
        for attr, value in zip(SIDE_SLOTS[side], list(player_ids) + [None] * 3):
            setattr(self, attr, value)
        if side == 1:
            self.seed_p1 = seed
        else:
            self.seed_p2 = seed

    def player_ids(self) -> List[int]:
        return self.side_player_ids(1) + self.side_player_ids(2)

    def has_resolved_players(self) -> bool:
        """Both sides filled; doubles also need both partners."""
        if self.player1_id is None or self.player2_id is None:
            return False
        if self.is_doubles and (self.player3_id is None or self.player4_id is None):
            return False
        return True

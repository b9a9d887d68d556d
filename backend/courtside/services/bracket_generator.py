"""
Single-elimination bracket generation on a power-of-two draw.

Entrants are placed by a standard seeded order so that seed s always meets
seed (bracket_size + 1 - s) in round 1 and the top two seeds can only meet
in the final. Seeds beyond the participant count are empty; a round-1 slot
with an empty side is a walkover. Walkover winners are NOT advanced here.

Pure: no I/O, no randomness. Entrants are opaque references (player ids or
Player objects); a doubles entrant is a 2- or 3-tuple of them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass
class BracketSlot:
    slot_id: str  # "round_match", e.g. "2_1"
    round_number: int
    match_number: int
    side_a: Optional[Tuple[Any, ...]] = None
    side_b: Optional[Tuple[Any, ...]] = None
    seed_a: Optional[int] = None
    seed_b: Optional[int] = None
    is_walkover: bool = False
    next_slot_id: Optional[str] = None
    loser_next_slot_id: Optional[str] = None  # semifinals only, into the third-place slot
    is_third_place: bool = False

    @property
    def next_position(self) -> Optional[int]:
        """Side of the next slot this slot's winner takes (1 = upper, 2 = lower)."""
        if self.next_slot_id is None:
            return None
        return 1 if self.match_number % 2 == 1 else 2

    @property
    def loser_next_position(self) -> Optional[int]:
        if self.loser_next_slot_id is None:
            return None
        return 1 if self.match_number % 2 == 1 else 2

    def player_slots(self) -> List[Optional[Any]]:
        """Flatten into player1..player6 order: side A fills 1/3/5, side B fills 2/4/6."""
        a = list(self.side_a or ())
        b = list(self.side_b or ())
        a += [None] * (3 - len(a))
        b += [None] * (3 - len(b))
        return [a[0], b[0], a[1], b[1], a[2], b[2]]


@dataclass
class Bracket:
    bracket_size: int
    total_rounds: int
    participant_count: int
    slots: List[BracketSlot] = field(default_factory=list)

    def round_slots(self, round_number: int) -> List[BracketSlot]:
        return [s for s in self.slots if s.round_number == round_number]

    def slots_by_id(self) -> Dict[str, BracketSlot]:
        return {s.slot_id: s for s in self.slots}

    @property
    def walkovers(self) -> List[BracketSlot]:
        return [s for s in self.slots if s.is_walkover]


def calculate_bracket_size(participant_count: int) -> int:
    """Smallest power of two >= participant_count (0 -> 0, 1 -> 1)."""
    if participant_count <= 0:
        return 0
    size = 1
    while size < participant_count:
        size *= 2
    return size


def calculate_rounds(bracket_size: int) -> int:
    if bracket_size <= 1:
        return 0
    return math.ceil(math.log2(bracket_size))


def slot_id_for(round_number: int, match_number: int) -> str:
    return f"{round_number}_{match_number}"


def next_slot_id_for(round_number: int, match_number: int, total_rounds: int) -> Optional[str]:
    if round_number >= total_rounds:
        return None
    return slot_id_for(round_number + 1, math.ceil(match_number / 2))


def seeded_order(bracket_size: int) -> List[int]:
    """Seed numbers in bracket position order; consecutive pairs meet in round 1.

      4 -> [1, 4, 2, 3]
      8 -> [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if bracket_size <= 1:
        return [1]

    order = [1, 2]
    while len(order) < bracket_size:
        mirror = len(order) * 2 + 1
        expanded: List[int] = []
        for seed in order:
            expanded.append(seed)
            expanded.append(mirror - seed)
        order = expanded
    return order


def generate_bracket(participants: Sequence[Any], is_doubles: bool = False) -> Bracket:
    """Build every slot of a single-elimination bracket.

    participants are in seed order (index 0 = seed 1). For doubles each entry
    may be a pair or trio (list/tuple); singles entries must be single refs.
    """
    entrants = [_members(p, is_doubles) for p in participants]
    participant_count = len(entrants)
    bracket_size = calculate_bracket_size(participant_count)
    total_rounds = calculate_rounds(bracket_size)
    bracket = Bracket(bracket_size=bracket_size, total_rounds=total_rounds, participant_count=participant_count)

    if participant_count == 0:
        return bracket

    if participant_count == 1:
        # Sole entrant wins outright
        bracket.slots.append(
            BracketSlot(
                slot_id=slot_id_for(1, 1),
                round_number=1,
                match_number=1,
                side_a=entrants[0],
                seed_a=1,
                is_walkover=True,
            )
        )
        return bracket

    order = seeded_order(bracket_size)
    by_seed = {i + 1: entrant for i, entrant in enumerate(entrants)}

    for match_number in range(1, bracket_size // 2 + 1):
        seed_a = order[(match_number - 1) * 2]
        seed_b = order[(match_number - 1) * 2 + 1]
        side_a = by_seed.get(seed_a)
        side_b = by_seed.get(seed_b)
        bracket.slots.append(
            BracketSlot(
                slot_id=slot_id_for(1, match_number),
                round_number=1,
                match_number=match_number,
                side_a=side_a,
                side_b=side_b,
                seed_a=seed_a if side_a is not None else None,
                seed_b=seed_b if side_b is not None else None,
                is_walkover=side_a is None or side_b is None,
                next_slot_id=next_slot_id_for(1, match_number, total_rounds),
            )
        )

    for round_number in range(2, total_rounds + 1):
        for match_number in range(1, bracket_size // (2**round_number) + 1):
            bracket.slots.append(
                BracketSlot(
                    slot_id=slot_id_for(round_number, match_number),
                    round_number=round_number,
                    match_number=match_number,
                    next_slot_id=next_slot_id_for(round_number, match_number, total_rounds),
                )
            )

    return bracket


def placeholder_bracket(participant_count: int, with_third_place: bool = True) -> Bracket:
    """Knockout shell for entrants decided later, e.g. group qualifiers.

    Round-1 slots keep the seed numbers they will be filled with; every side
    is empty. Slots missing a seed stay flagged as walkovers.
    """
    bracket = generate_bracket(list(range(1, participant_count + 1)))
    for slot in bracket.slots:
        slot.side_a = None
        slot.side_b = None
    if with_third_place:
        add_third_place_slot(bracket)
    return bracket


def add_third_place_slot(bracket: Bracket) -> Optional[BracketSlot]:
    """Append a third-place playoff fed by both semifinal losers.

    Needs two played semifinals: brackets of fewer than two rounds, or whose
    semifinals include a walkover, are left unchanged and None is returned.
    """
    if bracket.total_rounds < 2:
        return None
    final_round = bracket.total_rounds
    semifinals = bracket.round_slots(final_round - 1)
    if any(s.is_walkover for s in semifinals):
        return None
    third = BracketSlot(
        slot_id=slot_id_for(final_round, 2),
        round_number=final_round,
        match_number=2,
        is_third_place=True,
    )
    for semifinal in semifinals:
        semifinal.loser_next_slot_id = third.slot_id
    bracket.slots.append(third)
    return third


def round_name(round_number: int, total_rounds: int, is_third_place: bool = False) -> str:
    if is_third_place:
        return "Third Place"
    from_final = total_rounds - round_number
    if from_final == 0:
        return "Final"
    if from_final == 1:
        return "Semifinal"
    if from_final == 2:
        return "Quarterfinal"
    return f"Round {round_number}"


def points_for_round(round_number: int, total_rounds: int) -> int:
    """Semifinals and the final play to 21, earlier rounds to 15."""
    if total_rounds - round_number <= 1:
        return 21
    return 15


def _members(participant: Any, is_doubles: bool) -> Tuple[Any, ...]:
    if isinstance(participant, (list, tuple)):
        members = tuple(participant)
        if not is_doubles and len(members) != 1:
            raise ValueError("Singles brackets take one player per entrant")
        if not 1 <= len(members) <= 3:
            raise ValueError(f"Entrant must have 1-3 players, got {len(members)}")
        return members
    return (participant,)

"""
Group stage: split entrants into lettered groups and play every pairing once.

Standings rank by wins, then head-to-head, then point difference.
"""

from __future__ import annotations

import string
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from courtside.models.match import STATUS_COMPLETED, Match


MIN_GROUP_SIZE = 2


@dataclass
class GroupStanding:
    side_key: Tuple[int, ...]  # player ids of one entrant
    wins: int = 0
    losses: int = 0
    point_diff: int = 0
    rank: Optional[int] = None


def split_into_groups(entrants: Sequence[Any], group_count: int) -> Dict[str, List[Any]]:
    """Contiguous chunks labelled A, B, C, ...; sizes differ by at most one.

    The first (n mod group_count) groups take one extra entrant. Raises
    ValueError when any group would have fewer than two entrants.
    """
    if group_count < 1:
        raise ValueError("group_count must be >= 1")
    if group_count > len(string.ascii_uppercase):
        raise ValueError("At most 26 groups are supported")
    base, extra = divmod(len(entrants), group_count)
    if base < MIN_GROUP_SIZE:
        raise ValueError(
            f"Cannot split {len(entrants)} entrants into {group_count} groups of at least {MIN_GROUP_SIZE}"
        )
    groups: Dict[str, List[Any]] = {}
    start = 0
    for i in range(group_count):
        size = base + (1 if i < extra else 0)
        groups[string.ascii_uppercase[i]] = list(entrants[start:start + size])
        start += size
    return groups



def round_robin_pairings(entrants: Sequence[Any]) -> List[Tuple[Any, Any]]:
    """Every unordered pair exactly once: k(k-1)/2 pairings."""
    pairings = []
    for i in range(len(entrants)):
        for j in range(i + 1, len(entrants)):
            pairings.append((entrants[i], entrants[j]))
    return pairings


def compute_group_standings(matches: Iterable[Match], group_label: str) -> List[GroupStanding]:
    completed = [m for m in matches if m.group_label == group_label and m.status == STATUS_COMPLETED]
    table: Dict[Tuple[int, ...], GroupStanding] = {}

    for m in completed:
        key_1 = tuple(m.side_player_ids(1))
        key_2 = tuple(m.side_player_ids(2))
        s1 = table.setdefault(key_1, GroupStanding(side_key=key_1))
        s2 = table.setdefault(key_2, GroupStanding(side_key=key_2))

        if m.winner_id is not None and m.winner_id == m.player1_id:
            s1.wins += 1
            s2.losses += 1
        elif m.winner_id is not None and m.winner_id == m.player2_id:
            s2.wins += 1
            s1.losses += 1

        if not m.is_walkover:
            s1.point_diff += m.score_p1 - m.score_p2
            s2.point_diff += m.score_p2 - m.score_p1

    return rank_standings(list(table.values()), completed)


def rank_standings(standings: List[GroupStanding], completed: List[Match]) -> List[GroupStanding]:
    ordered = sorted(standings, key=lambda s: (-s.wins, -s.point_diff))
    # Adjacent ties resolved by head-to-head; bounded passes so circular results terminate
    for _ in range(len(ordered)):
        changed = False
        for i in range(len(ordered) - 1):
            a, b = ordered[i], ordered[i + 1]
            if a.wins == b.wins and _head_to_head_winner(a, b, completed) is b:
                ordered[i], ordered[i + 1] = b, a
                changed = True
        if not changed:
            break
    for rank, standing in enumerate(ordered, start=1):
        standing.rank = rank
    return ordered


def _head_to_head_winner(
    a: GroupStanding, b: GroupStanding, completed: List[Match]
) -> Optional[GroupStanding]:
    for m in completed:
        sides = (tuple(m.side_player_ids(1)), tuple(m.side_player_ids(2)))
        if set(sides) != {a.side_key, b.side_key}:
            continue
        if m.winner_id is None:
            return None
        winner_key = sides[0] if m.winner_id == m.player1_id else sides[1]
        return a if winner_key == a.side_key else b
    return None

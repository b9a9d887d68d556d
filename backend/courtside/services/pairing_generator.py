"""
Pairing of filtered player pools into doubles entrants.

Three modes: random (same-gender or open), mixed (one male + one female per
pair) and manual (admin-chosen ids). Every variant reports structured
warnings for anything it leaves out; errors mean no pairs were produced.

Randomness comes from an injectable random.Random so generation is
reproducible under test.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from courtside.models.player import Player

logger = logging.getLogger(__name__)

MIN_PARTICIPANTS = 2

WARN_ODD_PLAYER_DROPPED = "odd_player_dropped"
WARN_GENDER_MISMATCH = "gender_count_mismatch"
WARN_LEFTOVER_PAIRED = "leftover_same_gender_pair"
WARN_TRIO_FORMED = "trio_formed"
WARN_UNPAIRED = "player_unpaired"

Pair = Tuple[Player, ...]


@dataclass
class PairingWarning:
    code: str
    message: str
    player_ids: List[int] = field(default_factory=list)


@dataclass
class PairingResult:
    pairs: List[Pair] = field(default_factory=list)
    warnings: List[PairingWarning] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def id_pairs(self) -> List[Tuple[int, ...]]:
        return [tuple(p.id for p in pair) for pair in self.pairs]


def eligible_players(
    players: Iterable[Player],
    division: int,
    gender: Optional[str] = None,
) -> List[Player]:
    """Active players of one division, optionally restricted to one gender."""
    pool = []
    for p in players:
        if not p.is_active or p.division != division:
            continue
        if gender is not None and _gender_of(p) != gender:
            continue
        pool.append(p)
    return pool


def shuffle_entrants(players: Sequence[Player], rng: Optional[random.Random] = None) -> PairingResult:
    """Singles: every player is their own entrant, in random seed order."""
    rng = rng or random.Random()
    result = PairingResult()
    if len(players) < MIN_PARTICIPANTS:
        result.errors.append(_too_few(len(players)))
        return result
    shuffled = list(players)
    rng.shuffle(shuffled)
    result.pairs = [(p,) for p in shuffled]
    return result


def generate_random_pairs(players: Sequence[Player], rng: Optional[random.Random] = None) -> PairingResult:
    """Shuffle and pair consecutively. An odd player out is dropped and reported."""
    rng = rng or random.Random()
    result = PairingResult()
    if len(players) < MIN_PARTICIPANTS:
        result.errors.append(_too_few(len(players)))
        return result

    shuffled = list(players)
    rng.shuffle(shuffled)
    for i in range(0, len(shuffled) - 1, 2):
        result.pairs.append((shuffled[i], shuffled[i + 1]))

    if len(shuffled) % 2 == 1:
        dropped = shuffled[-1]
        logger.warning("Odd player count (%d); %s left without a partner", len(shuffled), dropped.name)
        result.warnings.append(
            PairingWarning(
                code=WARN_ODD_PLAYER_DROPPED,
                message=f"Odd number of players ({len(shuffled)}); {dropped.name} was left without a partner.",
                player_ids=[dropped.id],
            )
        )
    return result


def generate_mixed_pairs(
    players: Sequence[Player],
    rng: Optional[random.Random] = None,
    accommodate_leftovers: bool = False,
) -> PairingResult:
    """One male + one female per pair, zipped up to min(male_count, female_count).

    With accommodate_leftovers, surplus players of the larger gender pair up
    among themselves and a single remaining player joins the last pair as a
    third member. Otherwise surplus players are reported and left out.
    """
    rng = rng or random.Random()
    result = PairingResult()

    males = [p for p in players if _gender_of(p) == "male"]
    females = [p for p in players if _gender_of(p) == "female"]
    if len(males) + len(females) < MIN_PARTICIPANTS:
        result.errors.append(_too_few(len(males) + len(females)))
        return result
    if not males or not females:
        result.errors.append("Mixed pairing needs at least one male and one female player")
        return result

    rng.shuffle(males)
    rng.shuffle(females)
    min_count = min(len(males), len(females))
    for i in range(min_count):
        result.pairs.append((males[i], females[i]))

    leftovers = males[min_count:] + females[min_count:]
    if not leftovers:
        return result

    result.warnings.append(
        PairingWarning(
            code=WARN_GENDER_MISMATCH,
            message=f"Male/female counts differ ({len(males)} male, {len(females)} female).",
            player_ids=[p.id for p in leftovers],
        )
    )

    if not accommodate_leftovers:
        for p in leftovers:
            result.warnings.append(
                PairingWarning(
                    code=WARN_UNPAIRED,
                    message=f"{p.name} has no mixed partner and was left out.",
                    player_ids=[p.id],
                )
            )
        return result

    for i in range(0, len(leftovers) - 1, 2):
        a, b = leftovers[i], leftovers[i + 1]
        result.pairs.append((a, b))
        result.warnings.append(
            PairingWarning(
                code=WARN_LEFTOVER_PAIRED,
                message=f"{a.name} / {b.name} paired as a same-gender pair.",
                player_ids=[a.id, b.id],
            )
        )
    if len(leftovers) % 2 == 1:
        solo = leftovers[-1]
        target = result.pairs[-1]
        result.pairs[-1] = (target[0], target[1], solo)
        logger.warning("Trio formed: %s joined %s / %s", solo.name, target[0].name, target[1].name)
        result.warnings.append(
            PairingWarning(
                code=WARN_TRIO_FORMED,
                message=f"{solo.name} joined {target[0].name} / {target[1].name} as a third member.",
                player_ids=[solo.id],
            )
        )
    return result


def build_manual_pairs(players: Sequence[Player], id_groups: Sequence[Sequence[int]]) -> PairingResult:
    """Validate admin-chosen pairs (or trios) against the eligible pool."""
    result = PairingResult()
    by_id: Dict[int, Player] = {p.id: p for p in players}
    seen: set = set()

    for index, group in enumerate(id_groups, start=1):
        if not 2 <= len(group) <= 3:
            result.errors.append(f"Pair {index} must have 2 or 3 players, got {len(group)}")
            continue
        members = []
        for pid in group:
            if pid not in by_id:
                result.errors.append(f"Pair {index}: player {pid} is not eligible for this category")
            elif pid in seen:
                result.errors.append(f"Pair {index}: player {pid} is already in another pair")
            else:
                members.append(by_id[pid])
            seen.add(pid)
        if len(members) == len(group):
            result.pairs.append(tuple(members))

    if not result.errors and len(result.pairs) < MIN_PARTICIPANTS:
        result.errors.append(f"At least {MIN_PARTICIPANTS} pairs are required, got {len(result.pairs)}")

    if result.errors:
        result.pairs = []
        return result

    unpaired = [p for p in players if p.id not in seen]
    for p in unpaired:
        result.warnings.append(
            PairingWarning(
                code=WARN_UNPAIRED,
                message=f"{p.name} is eligible but was not placed in any pair.",
                player_ids=[p.id],
            )
        )
    return result


def _gender_of(player: Player) -> str:
    value = getattr(player.gender, "value", player.gender)
    return str(value or "").strip().lower()


def _too_few(count: int) -> str:
    return f"Not enough participants (at least {MIN_PARTICIPANTS} required, found {count})"

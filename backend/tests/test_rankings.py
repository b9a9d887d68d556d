"""
Tests for knockout placings, points awards and the cumulative player ranking.
"""

import random
from datetime import datetime

import pytest
from sqlmodel import Session, select

from courtside.models.match import PHASE_PRELIMINARY, STATUS_COMPLETED, STATUS_WAITING, Match
from courtside.models.player import Player
from courtside.services.match_runtime import update_match_status
from courtside.services.rankings import (
    CategoryNotFinishedError,
    PointsAlreadyAwardedError,
    award_points,
    calculate_rankings,
    player_rankings,
)
from courtside.services.tournament_builder import GenerationRequest, generate_category

NOW = datetime(2026, 5, 3, 16, 0, 0)


def _ko(round_number: int, number: int, side_1, side_2, winner_side=None, third_place: bool = False) -> Match:
    side_1 = side_1 if isinstance(side_1, tuple) else (side_1,)
    side_2 = side_2 if isinstance(side_2, tuple) else (side_2,)
    match = Match(tournament_type="mens_doubles", division=1, round=round_number, match_number=number)
    match.set_side(1, list(side_1))
    match.set_side(2, list(side_2))
    match.is_third_place = third_place
    if winner_side is not None:
        match.status = STATUS_COMPLETED
        match.winner_id = (side_1 if winner_side == 1 else side_2)[0]
    return match


def _eight_player_draw(final_winner=2, with_third_place=False):
    matches = [
        _ko(1, 1, 1, 8, 1),
        _ko(1, 2, 4, 5, 2),
        _ko(1, 3, 2, 7, 1),
        _ko(1, 4, 3, 6, 2),
        _ko(2, 1, 1, 5, 1),
        _ko(2, 2, 2, 6, 2),
        _ko(3, 1, 1, 6, final_winner),
    ]
    if with_third_place:
        matches.append(_ko(3, 2, 5, 2, 2, third_place=True))
    return matches


class TestCalculateRankings:
    def test_losers_rank_by_round_reached(self):
        ranks = calculate_rankings(_eight_player_draw())
        assert ranks == {6: 1, 1: 2, 5: 4, 2: 4, 8: 8, 4: 8, 7: 8, 3: 8}

    def test_third_place_match_splits_semifinal_losers(self):
        ranks = calculate_rankings(_eight_player_draw(with_third_place=True))
        assert ranks[2] == 3
        assert ranks[5] == 4
        assert ranks[6] == 1
        assert ranks[1] == 2

    def test_unfinished_final_ranks_only_decided_players(self):
        matches = _eight_player_draw(final_winner=None)
        ranks = calculate_rankings(matches)
        assert 1 not in ranks and 6 not in ranks
        assert ranks[5] == 4

    def test_doubles_partners_share_rank(self):
        ranks = calculate_rankings([_ko(1, 1, (1, 11), (2, 12), 2)])
        assert ranks == {2: 1, 12: 1, 1: 2, 11: 2}

    def test_group_matches_ignored(self):
        group = _ko(1, 1, 1, 2, 1)
        group.phase = PHASE_PRELIMINARY
        assert calculate_rankings([group]) == {}


class TestAwardPoints:
    def _play_out(self, session: Session, finish: bool = True) -> list[Match]:
        session.add_all(Player(name=f"P{i}", gender="male", division=1) for i in range(4))
        session.commit()
        generate_category(session, GenerationRequest("mens_singles", 1), rng=random.Random(4), now=NOW)
        matches = session.exec(select(Match).order_by(Match.round, Match.match_number)).all()
        for match in matches[:2]:
            update_match_status(session, match.id, STATUS_COMPLETED, winner_side=1, now=NOW)
        if finish:
            update_match_status(session, matches[2].id, STATUS_COMPLETED, winner_side=1, now=NOW)
        for match in matches:
            session.refresh(match)
        return matches

    def test_default_distribution_added_to_totals(self, session: Session):
        semi_a, semi_b, final = self._play_out(session)

        placings = award_points(session, "mens_singles", 1, now=NOW)

        assert [(p.rank, p.points) for p in placings] == [(1, 100), (2, 70), (4, 30), (4, 30)]
        assert session.get(Player, final.player1_id).total_points == 100
        assert session.get(Player, final.player2_id).total_points == 70
        assert session.get(Player, semi_a.player2_id).total_points == 30
        assert session.get(Player, semi_b.player2_id).total_points == 30
        assert all(m.points_awarded for m in session.exec(select(Match)).all())

    def test_custom_distribution_and_unlisted_ranks(self, session: Session):
        _, _, final = self._play_out(session)
        award_points(session, "mens_singles", 1, distribution={1: 10}, now=NOW)
        assert session.get(Player, final.player1_id).total_points == 10
        assert session.get(Player, final.player2_id).total_points == 0

    def test_points_awarded_once(self, session: Session):
        self._play_out(session)
        award_points(session, "mens_singles", 1, now=NOW)
        with pytest.raises(PointsAlreadyAwardedError):
            award_points(session, "mens_singles", 1, now=NOW)

    def test_open_final_rejected(self, session: Session):
        matches = self._play_out(session, finish=False)
        assert matches[2].status == STATUS_WAITING
        with pytest.raises(CategoryNotFinishedError):
            award_points(session, "mens_singles", 1, now=NOW)
        assert all(p.total_points == 0 for p in session.exec(select(Player)).all())

    def test_unknown_category_rejected(self, session: Session):
        with pytest.raises(CategoryNotFinishedError):
            award_points(session, "womens_singles", 2)


class TestPlayerRankings:
    def test_sorted_by_points_then_filtered(self, session: Session):
        session.add_all(
            [
                Player(name="Low", gender="male", division=1, total_points=30),
                Player(name="High", gender="male", division=1, total_points=170),
                Player(name="Other division", gender="male", division=2, total_points=500),
                Player(name="Woman", gender="female", division=1, total_points=90),
            ]
        )
        session.commit()

        assert [p.name for p in player_rankings(session)] == ["Other division", "High", "Woman", "Low"]
        assert [p.name for p in player_rankings(session, gender="male", division=1)] == ["High", "Low"]

"""
Unit tests for first round pairing.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.models import BracketInvariantError, QualifiedTeam
from core.pairing import (
    assign_pairs_to_slots,
    correct_half,
    different_group,
    find_opponent,
    generate_first_round_matches,
    pair_best_vs_worst,
    pair_open_slots,
    resolve_same_group_pairs,
    strict_match,
)
from core.seeding import TOP_HALF, BOTTOM_HALF, SlotRegistry, seed_bye_teams
from conftest import ranked_groups


def by_id(teams):
    return {team.team_id: team for team in teams}


class TestTierPredicates:
    """Tests for the opponent acceptance rules."""

    def test_different_group(self):
        anchor = QualifiedTeam(101, 10, 1, 1)
        assert different_group(anchor, QualifiedTeam(202, 20, 2, 2), TOP_HALF, {})
        assert not different_group(anchor, QualifiedTeam(102, 10, 2, 1), TOP_HALF, {})

    def test_correct_half_for_second(self):
        anchor = QualifiedTeam(201, 20, 1, 2)
        second_a = QualifiedTeam(102, 10, 2, 1)
        assert not correct_half(anchor, second_a, TOP_HALF, {10: TOP_HALF})
        assert correct_half(anchor, second_a, BOTTOM_HALF, {10: TOP_HALF})

    def test_correct_half_ignores_firsts_and_unseeded_groups(self):
        anchor = QualifiedTeam(201, 20, 1, 2)
        assert correct_half(anchor, QualifiedTeam(101, 10, 1, 1), TOP_HALF, {10: TOP_HALF})
        assert correct_half(anchor, QualifiedTeam(302, 30, 2, 3), TOP_HALF, {10: TOP_HALF})

    def test_strict_needs_both(self):
        anchor = QualifiedTeam(101, 10, 1, 1)
        second_b = QualifiedTeam(202, 20, 2, 2)
        assert strict_match(anchor, second_b, TOP_HALF, {20: BOTTOM_HALF})
        assert not strict_match(anchor, second_b, BOTTOM_HALF, {20: BOTTOM_HALF})


class TestFindOpponent:
    """Tests for tiered opponent search."""

    def setup_method(self):
        self.teams = by_id(ranked_groups(4))
        self.halves = {10: TOP_HALF, 20: BOTTOM_HALF, 30: BOTTOM_HALF, 40: TOP_HALF}

    def test_strict_takes_weakest_fitting(self):
        """2A must go bottom, so a top-half anchor takes 2B instead."""
        anchor = QualifiedTeam(501, 50, 1, 5)
        candidates = [self.teams[402], self.teams[302], self.teams[202], self.teams[102]]
        opponent, tier = find_opponent(anchor, TOP_HALF, candidates, self.halves)
        assert opponent.team_id == 202
        assert tier == 'strict'

    def test_relaxes_half_before_group(self):
        anchor = self.teams[202]
        opponent, tier = find_opponent(anchor, TOP_HALF, [self.teams[102]], self.halves)
        assert opponent.team_id == 102
        assert tier == 'relaxed-half'

    def test_same_group_in_correct_half(self):
        anchor = self.teams[101]
        opponent, tier = find_opponent(anchor, BOTTOM_HALF, [self.teams[102]], self.halves)
        assert opponent.team_id == 102
        assert tier == 'relaxed-group'

    def test_any_as_last_resort(self):
        anchor = self.teams[101]
        opponent, tier = find_opponent(anchor, TOP_HALF, [self.teams[102]], self.halves)
        assert opponent.team_id == 102
        assert tier == 'any'

    def test_no_candidates(self):
        assert find_opponent(self.teams[101], TOP_HALF, [], self.halves) == (None, None)


class TestPairBestVsWorst:
    """Tests for best-vs-worst pairing with group avoidance."""

    def test_four_groups(self):
        pairs = pair_best_vs_worst(ranked_groups(4))
        assert [(a.team_id, b.team_id) for a, b in pairs] == [
            (101, 202), (201, 102), (301, 402), (401, 302),
        ]

    def test_no_same_group_pairs(self):
        for num_groups in range(2, 9):
            for a, b in pair_best_vs_worst(ranked_groups(num_groups)):
                assert a.from_group_id != b.from_group_id

    def test_swaps_with_earlier_pair(self):
        """The second top team only has a same-group team left, so it trades."""
        t1 = QualifiedTeam(1, 1, 1, 1)
        t2 = QualifiedTeam(2, 3, 1, 3)
        b1 = QualifiedTeam(3, 3, 2, 3)
        b2 = QualifiedTeam(4, 2, 2, 2)
        pairs = pair_best_vs_worst([t1, t2, b1, b2])
        assert [(a.team_id, b.team_id) for a, b in pairs] == [(1, 3), (2, 4)]

    def test_same_group_when_unavoidable(self):
        t1 = QualifiedTeam(1, 1, 1, 1)
        t2 = QualifiedTeam(2, 2, 1, 2)
        b1 = QualifiedTeam(3, 2, 2, 2)
        b2 = QualifiedTeam(4, 2, 3, 2)
        pairs = pair_best_vs_worst([t1, t2, b1, b2])
        assert [(a.team_id, b.team_id) for a, b in pairs] == [(1, 4), (2, 3)]

    def test_every_team_used_once(self):
        teams = ranked_groups(5, per_group=2)
        pairs = pair_best_vs_worst(teams)
        used = [t.team_id for pair in pairs for t in pair]
        assert sorted(used) == sorted(t.team_id for t in teams)


class TestGenerateFirstRoundMatches:
    """Tests for the first round when nobody has a bye."""

    def test_eight_teams_follow_seed_order(self):
        matches = generate_first_round_matches(ranked_groups(4), 'cuartos')
        assert [(m.bracket_pos, m.team1_id, m.team2_id) for m in matches] == [
            (1, 101, 202),
            (2, 401, 302),
            (3, 201, 102),
            (4, 301, 402),
        ]
        assert all(m.round == 'cuartos' for m in matches)

    def test_four_teams(self):
        matches = generate_first_round_matches(ranked_groups(2), 'semifinal')
        assert [(m.bracket_pos, m.team1_id, m.team2_id) for m in matches] == [
            (1, 101, 202),
            (2, 201, 102),
        ]


class TestResolveSameGroupPairs:
    """Tests for trading teams between pairs to split groups."""

    def test_trades_with_clean_pair(self):
        a = QualifiedTeam(1, 1, 1, 1)
        b = QualifiedTeam(2, 2, 2, 2)
        c = QualifiedTeam(3, 3, 1, 3)
        d = QualifiedTeam(4, 3, 2, 3)
        pairs = [[a, b], [c, d]]
        assert resolve_same_group_pairs(pairs) == 0
        for team1, team2 in pairs:
            assert team1.from_group_id != team2.from_group_id
        assert sorted(t.team_id for pair in pairs for t in pair) == [1, 2, 3, 4]

    def test_seeded_team_stays_in_its_slot(self):
        """A fixed pair may hand over its opponent but keeps its first team."""
        anchor = QualifiedTeam(402, 40, 2, 4)
        third_e = QualifiedTeam(503, 50, 3, 5)
        second_a = QualifiedTeam(102, 10, 2, 1)
        third_a = QualifiedTeam(103, 10, 3, 1)
        pairs = [[anchor, third_e], [second_a, third_a]]
        halves = {10: TOP_HALF, 40: TOP_HALF}
        assert resolve_same_group_pairs(pairs, [BOTTOM_HALF, TOP_HALF], halves, fixed=[0]) == 0
        # 2A moves to the bottom half, opposite 1A
        assert pairs == [[anchor, second_a], [third_e, third_a]]

    def test_unresolvable_when_group_holds_majority(self):
        x = QualifiedTeam(1, 1, 1, 1)
        y = QualifiedTeam(2, 2, 1, 2)
        p = QualifiedTeam(3, 2, 2, 2)
        q = QualifiedTeam(4, 2, 3, 2)
        pairs = [[x, y], [p, q]]
        assert resolve_same_group_pairs(pairs, fixed=[0]) == 1
        assert pairs == [[x, y], [p, q]]


class TestAssignPairsToSlots:
    """Tests for seating ready-made pairs into empty slots."""

    def test_second_goes_opposite_its_first(self):
        first_a = QualifiedTeam(101, 10, 1, 1)
        registry = SlotRegistry(4, [first_a, None, None, None])
        constrained = (QualifiedTeam(102, 10, 2, 1), QualifiedTeam(303, 30, 3, 3))
        free = (QualifiedTeam(203, 20, 3, 2), QualifiedTeam(403, 40, 3, 4))
        slotted = assign_pairs_to_slots([constrained, free], [1, 2], registry, {10: TOP_HALF})
        assert slotted == {1: free, 2: constrained}

    def test_falls_back_to_best_slot(self):
        registry = SlotRegistry(4, [QualifiedTeam(101, 10, 1, 1), None, None, None])
        pair = (QualifiedTeam(102, 10, 2, 1), QualifiedTeam(203, 20, 3, 2))
        assert assign_pairs_to_slots([pair], [1], registry, {10: TOP_HALF}) == {1: pair}


class TestPairOpenSlots:
    """Tests for finding opponents for seeded slots."""

    def test_six_groups(self):
        ranked = ranked_groups(6)
        registry = SlotRegistry(8, seed_bye_teams(ranked, 8))
        teams = by_id(ranked)
        candidates = [teams[402], teams[302], teams[202], teams[102]]
        pairings, remaining = pair_open_slots(
            registry, [3, 7, 5, 1], candidates, registry.first_place_halves()
        )
        assert {pos: t.team_id for pos, t in pairings.items()} == {3: 202, 7: 102, 5: 402, 1: 302}
        assert remaining == []

    def test_trades_to_avoid_same_group(self):
        a = QualifiedTeam(1, 1, 1, 1)
        b = QualifiedTeam(2, 3, 1, 3)
        c = QualifiedTeam(3, 3, 1, 3)
        d = QualifiedTeam(4, 2, 1, 2)
        registry = SlotRegistry(4, [a, b, None, None])
        pairings, remaining = pair_open_slots(registry, [0, 1], [c, d], {})
        assert pairings[0].team_id == 3
        assert pairings[1].team_id == 4
        assert remaining == []

    def test_leftover_candidates_returned(self):
        a = QualifiedTeam(1, 1, 1, 1)
        c = QualifiedTeam(3, 3, 2, 3)
        d = QualifiedTeam(4, 2, 2, 2)
        registry = SlotRegistry(2, [a, None])
        pairings, remaining = pair_open_slots(registry, [0], [c, d], {})
        assert pairings[0] == d
        assert remaining == [c]

    def test_runs_out_of_opponents(self):
        registry = SlotRegistry(2, [QualifiedTeam(1, 1, 1, 1), None])
        with pytest.raises(BracketInvariantError):
            pair_open_slots(registry, [0], [], {})

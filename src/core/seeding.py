"""
Bracket slot seeding for playoff brackets.

Slots are numbered top to bottom (0-based). A slot's "quality" is the seed
the standard bracket order assigns to it, so slot quality 1 is where the
strongest team belongs. Slots pair up as (0, 1), (2, 3), ... and the bracket
splits into a top half and a bottom half at ``size // 2``.
"""
import logging
from typing import Dict, Iterator, List, Optional

from core.models import QualifiedTeam

logger = logging.getLogger(__name__)

TOP_HALF = 0
BOTTOM_HALF = 1


def get_standard_seed_order(size: int) -> List[int]:
    """
    Standard tournament seed order: slot i receives seed order[i].

    For 8 slots: [1, 8, 4, 5, 2, 7, 3, 6], so 1v8, 4v5, 2v7, 3v6 and the
    top two seeds can only meet in the final.
    """
    if size <= 2 or size % 2 != 0:
        return list(range(1, max(size, 0) + 1))

    upper_half = get_standard_seed_order(size // 2)
    lower_half = [size + 1 - seed for seed in upper_half]

    # Interleave: pair each upper seed with its complement
    result = []
    for u, l in zip(upper_half, lower_half):
        result.extend([u, l])
    return result


class SlotRegistry:
    """Bracket slots with an occupancy array and a fixed quality ranking."""

    def __init__(self, size: int, slots: Optional[List[Optional[QualifiedTeam]]] = None):
        self.size = size
        self.seed_order = get_standard_seed_order(size)
        self.slots = list(slots) if slots is not None else [None] * size
        if len(self.slots) != size:
            raise ValueError(f'Expected {size} slots, got {len(self.slots)}')
        self.by_quality = sorted(range(size), key=lambda pos: self.seed_order[pos])
        self.half_size = size // 2

    def half_of(self, pos: int) -> int:
        return TOP_HALF if pos < self.half_size else BOTTOM_HALF

    @staticmethod
    def partner(pos: int) -> int:
        return pos + 1 if pos % 2 == 0 else pos - 1

    def is_open(self, pos: int) -> bool:
        return self.slots[pos] is None

    def place(self, pos: int, team: QualifiedTeam):
        if self.slots[pos] is not None:
            raise ValueError(f'Slot {pos} already holds team {self.slots[pos].team_id}')
        self.slots[pos] = team

    def clear(self, pos: int) -> Optional[QualifiedTeam]:
        team = self.slots[pos]
        self.slots[pos] = None
        return team

    def open_positions(self, half: Optional[int] = None) -> Iterator[int]:
        """Open slots, best quality first, optionally restricted to one half."""
        for pos in self.by_quality:
            if not self.is_open(pos):
                continue
            if half is not None and self.half_of(pos) != half:
                continue
            yield pos

    def best_open(self, half: Optional[int] = None) -> Optional[int]:
        return next(self.open_positions(half), None)

    def heads(self) -> List[int]:
        """The seed 1 and seed 2 slots, one per half."""
        return [pos for pos in self.by_quality if self.seed_order[pos] <= 2]

    def team_ids(self) -> set:
        return {team.team_id for team in self.slots if team is not None}

    def first_place_halves(self) -> Dict[int, int]:
        """Map group id -> half holding that group's 1st-place team."""
        halves = {}
        for pos, team in enumerate(self.slots):
            if team is not None and team.pos == 1:
                halves[team.from_group_id] = self.half_of(pos)
        return halves


def required_half(team: QualifiedTeam, first_halves: Dict[int, int]) -> Optional[int]:
    """
    Half a 2nd-place team must occupy: the one opposite its group's 1st.

    None when any half will do (not a 2nd-place team, or its group has no
    seeded 1st).
    """
    if team.pos != 2:
        return None
    first_half = first_halves.get(team.from_group_id)
    if first_half is None:
        return None
    return BOTTOM_HALF if first_half == TOP_HALF else TOP_HALF


def _best_second_for_half(half: int, seconds: List[QualifiedTeam],
                          first_halves: Dict[int, int]) -> Optional[QualifiedTeam]:
    for team in seconds:
        wanted = required_half(team, first_halves)
        if wanted is None or wanted == half:
            return team
    return None


def seed_bye_teams(teams: List[QualifiedTeam], num_positions: int) -> List[Optional[QualifiedTeam]]:
    """
    Distribute teams over ``num_positions`` bracket slots in stages:

    1. 1st-place teams take the best open slots (1A, 1B, 1C, ...).
    2. Any bracket head (seed 1 or seed 2 slot) still open takes the best
       2nd-place team whose group's 1st sits in the other half.
    3. Remaining open slots, best first, take the remaining 2nd-place teams
       under the same half rule.

    3rd-place teams are left for ``place_third_place_teams``. Returns one
    entry per slot, None where the slot is still open.
    """
    registry = SlotRegistry(num_positions)
    if not teams:
        return registry.slots

    firsts = sorted((t for t in teams if t.pos == 1), key=lambda t: t.group_order)
    seconds = sorted((t for t in teams if t.pos == 2), key=lambda t: -t.group_order)

    for team in firsts:
        pos = registry.best_open()
        if pos is None:
            logger.debug('No slot left for 1st-place team %s', team.team_id)
            break
        registry.place(pos, team)

    first_halves = registry.first_place_halves()

    for pos in registry.heads():
        if not registry.is_open(pos):
            continue
        team = _best_second_for_half(registry.half_of(pos), seconds, first_halves)
        if team is not None:
            registry.place(pos, team)
            seconds.remove(team)

    for pos in list(registry.open_positions()):
        team = _best_second_for_half(registry.half_of(pos), seconds, first_halves)
        if team is not None:
            registry.place(pos, team)
            seconds.remove(team)

    if seconds:
        logger.debug('2nd-place teams left unseeded: %s', [t.team_id for t in seconds])

    return registry.slots


def place_third_place_teams(registry: SlotRegistry, thirds: List[QualifiedTeam]) -> List[QualifiedTeam]:
    """
    Extension point for seeding 3rd-place teams.

    No placement rule exists yet: every team is returned as not placed and
    the registry is left untouched.
    """
    return list(thirds)

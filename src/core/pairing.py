"""
First round pairing: who plays whom before the byes join the bracket.
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple

from core.models import BracketInvariantError, PlayoffMatch, QualifiedTeam
from core.seeding import SlotRegistry, get_standard_seed_order, required_half

logger = logging.getLogger(__name__)


def different_group(anchor: QualifiedTeam, candidate: QualifiedTeam, half: int,
                    first_halves: Dict[int, int]) -> bool:
    return candidate.from_group_id != anchor.from_group_id


def correct_half(anchor: QualifiedTeam, candidate: QualifiedTeam, half: int,
                 first_halves: Dict[int, int]) -> bool:
    """A 2nd-place candidate may only join the half opposite its group's 1st."""
    wanted = required_half(candidate, first_halves)
    return wanted is None or wanted == half


def strict_match(anchor, candidate, half, first_halves) -> bool:
    return (different_group(anchor, candidate, half, first_halves)
            and correct_half(anchor, candidate, half, first_halves))


def any_team(anchor, candidate, half, first_halves) -> bool:
    return True


# Tried in order. Same-group pairings are only reached once every
# different-group candidate is gone.
OPPONENT_TIERS: List[Tuple[str, Callable]] = [
    ('strict', strict_match),
    ('relaxed-half', different_group),
    ('relaxed-group', correct_half),
    ('any', any_team),
]


def find_opponent(anchor: QualifiedTeam, half: int, candidates: List[QualifiedTeam],
                  first_halves: Dict[int, int],
                  tiers=OPPONENT_TIERS) -> Tuple[Optional[QualifiedTeam], Optional[str]]:
    """
    Pick the weakest candidate accepted by the first tier that accepts any.

    ``candidates`` is in ranking order (best first). Returns
    ``(opponent, tier_name)`` or ``(None, None)`` when there are no candidates.
    """
    for tier_name, accepts in tiers:
        for candidate in reversed(candidates):
            if accepts(anchor, candidate, half, first_halves):
                return candidate, tier_name
    return None, None


def pair_open_slots(registry: SlotRegistry, anchors: List[int], candidates: List[QualifiedTeam],
                    first_halves: Dict[int, int]) -> Tuple[Dict[int, QualifiedTeam], List[QualifiedTeam]]:
    """
    Give every anchor slot (a seeded team still needing an opponent) an
    opponent from ``candidates``.

    Anchors are served best slot first. Returns ``(slot -> opponent,
    candidates left over)``.
    """
    remaining = list(candidates)
    pairs = []
    for pos in anchors:
        anchor = registry.slots[pos]
        half = registry.half_of(pos)
        opponent, tier = find_opponent(anchor, half, remaining, first_halves)
        if opponent is None:
            raise BracketInvariantError(f'No opponent left for team {anchor.team_id} in slot {pos}')
        remaining.remove(opponent)
        if tier != 'strict':
            logger.debug('Slot %d: team %s paired with %s using %s tier',
                         pos, anchor.team_id, opponent.team_id, tier)
        if opponent.from_group_id == anchor.from_group_id:
            traded = _swap_into_earlier_pair(pairs, anchor, opponent)
            if traded is None:
                logger.debug('Slot %d: team %s left with same-group opponent %s',
                             pos, anchor.team_id, opponent.team_id)
            else:
                opponent = traded
        pairs.append([anchor, opponent])

    pairings = {pos: opponent for pos, (_, opponent) in zip(anchors, pairs)}
    return pairings, remaining


def _swap_into_earlier_pair(pairs: List[List[QualifiedTeam]], team1: QualifiedTeam,
                            candidate: QualifiedTeam) -> Optional[QualifiedTeam]:
    """
    Resolve a same-group clash by trading opponents with an earlier pair.

    Scans earlier pairs best first. On success ``candidate`` joins that pair
    and the team it displaced is returned as the new opponent for ``team1``.
    """
    for pair in pairs:
        held = pair[1]
        if held.from_group_id != team1.from_group_id and pair[0].from_group_id != candidate.from_group_id:
            pair[1] = candidate
            return held
    return None


def pair_best_vs_worst(teams: List[QualifiedTeam]) -> List[Tuple[QualifiedTeam, QualifiedTeam]]:
    """
    Pair best vs worst around the midpoint of ``teams`` (ranking order).

    When the mirrored opponent shares a group with the stronger team, the
    nearest different-group team is taken from the worst end instead; if the
    whole weaker half shares that group, opponents are traded with an earlier
    pair. A same-group match is accepted only when both searches fail.
    """
    num_matches = len(teams) // 2
    top = teams[:num_matches]
    bottom = list(teams[num_matches:num_matches * 2])

    pairs = []
    for team1 in top:
        opponent = next((t for t in reversed(bottom) if t.from_group_id != team1.from_group_id), None)
        if opponent is None:
            candidate = bottom[-1]
            opponent = _swap_into_earlier_pair(pairs, team1, candidate)
            bottom.remove(candidate)
            if opponent is None:
                logger.debug('Team %s left with same-group opponent %s', team1.team_id, candidate.team_id)
                opponent = candidate
        else:
            bottom.remove(opponent)
        pairs.append([team1, opponent])

    return [(t1, t2) for t1, t2 in pairs]


def assign_pairs_to_slots(pairs: List[Tuple[QualifiedTeam, QualifiedTeam]], positions: List[int],
                          registry: SlotRegistry,
                          first_halves: Dict[int, int]) -> Dict[int, Tuple[QualifiedTeam, QualifiedTeam]]:
    """
    Seat ready-made pairs into open slots.

    Pairs holding a 2nd-place team whose group's 1st is seeded go first, each
    into the best free slot of the opposite half. The rest take the slots
    left over, best first. Returns ``slot -> (team1, team2)`` in the order
    of ``positions``.
    """
    free = list(positions)
    slotted = {}
    waiting = []
    for pair in pairs:
        halves = {required_half(team, first_halves) for team in pair} - {None}
        pos = None
        if len(halves) == 1:
            wanted = halves.pop()
            pos = next((p for p in free if registry.half_of(p) == wanted), None)
        if pos is None:
            waiting.append(pair)
            continue
        free.remove(pos)
        slotted[pos] = pair
    for pos, pair in zip(free, waiting):
        slotted[pos] = pair
    return {pos: slotted[pos] for pos in positions if pos in slotted}


def _half_misses(pair, half: Optional[int], first_halves: Dict[int, int]) -> int:
    if half is None:
        return 0
    return sum(1 for team in pair if required_half(team, first_halves) not in (None, half))


def resolve_same_group_pairs(pairs: List[List[QualifiedTeam]], halves: Optional[List[int]] = None,
                             first_halves: Optional[Dict[int, int]] = None, fixed=()) -> int:
    """
    Trade teams between pairs so that no pair shares a group, where possible.

    ``pairs`` is a list of mutable ``[team1, team2]`` lists, changed in place.
    ``team1`` of a pair whose index is in ``fixed`` never moves. ``halves``
    gives the bracket half of each pair; among the possible trades the one
    leaving fewest 2nd-place teams in the wrong half wins.

    A same-group pair can always trade with a pair holding no team of that
    group, and such a pair exists unless the group has more than half of all
    teams. Returns the number of same-group pairs left.
    """
    first_halves = first_halves or {}
    fixed = set(fixed)

    def movable(i):
        return (1,) if i in fixed else (1, 0)

    def half_of(i):
        return halves[i] if halves is not None else None

    unresolved = 0
    for i, pair in enumerate(pairs):
        group = pair[0].from_group_id
        if pair[1].from_group_id != group:
            continue

        best = None
        for j, other in enumerate(pairs):
            if j == i or group in (other[0].from_group_id, other[1].from_group_id):
                continue
            for a in movable(i):
                for b in movable(j):
                    new_pair = list(pair)
                    new_other = list(other)
                    new_pair[a], new_other[b] = other[b], pair[a]
                    misses = (_half_misses(new_pair, half_of(i), first_halves)
                              + _half_misses(new_other, half_of(j), first_halves))
                    if best is None or misses < best[0]:
                        best = (misses, j, a, b)

        if best is None:
            logger.warning('Same-group first round match: %s vs %s (group %s)',
                           pair[0].team_id, pair[1].team_id, group)
            unresolved += 1
            continue
        _, j, a, b = best
        logger.debug('Traded %s for %s to split group %s', pair[a].team_id, pairs[j][b].team_id, group)
        pair[a], pairs[j][b] = pairs[j][b], pair[a]
    return unresolved


def generate_first_round_matches(teams_playing: List[QualifiedTeam], round_name: str) -> List[PlayoffMatch]:
    """
    First round when nobody has a bye.

    Pairs are built with ``pair_best_vs_worst`` and laid out along the
    standard seed order, so bracket_pos 1 holds the top seed's match and the
    top two seeds sit in opposite halves.
    """
    pairs = [list(pair) for pair in pair_best_vs_worst(teams_playing)]
    resolve_same_group_pairs(pairs, fixed=range(len(pairs)))
    seed_order = get_standard_seed_order(len(teams_playing))
    seed_of = {team.team_id: i + 1 for i, team in enumerate(teams_playing)}

    def bracket_slot(pair):
        best_seed = min(seed_of[pair[0].team_id], seed_of[pair[1].team_id])
        return seed_order.index(best_seed)

    matches = []
    for bracket_pos, (team1, team2) in enumerate(sorted(pairs, key=bracket_slot), start=1):
        matches.append(PlayoffMatch(
            round=round_name,
            bracket_pos=bracket_pos,
            team1_id=team1.team_id,
            team2_id=team2.team_id,
        ))
    return matches

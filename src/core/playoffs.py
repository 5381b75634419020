"""
Playoff bracket generation from group stage qualifiers.

Rules:
- Global ranking is fixed: 1A, 1B, 1C, ..., then 2nds in reverse group
  order (..., 2C, 2B, 2A), then 3A, 3B, ...
- The best ranked teams get the byes.
- First round pairs best vs worst available, avoiding same-group matches.
- Later rounds are "Winner <Round><N>" placeholders down to the final.
"""
import logging
import math
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Union

from core.models import (
    ROUND_MATCHES, ROUND_ORDER, VALID_POSITIONS,
    BracketInvariantError, InsufficientTeamsError, InvalidTeamError,
    PlayoffMatch, QualifiedTeam,
)
from core.pairing import (
    assign_pairs_to_slots, generate_first_round_matches, pair_best_vs_worst,
    pair_open_slots, resolve_same_group_pairs,
)
from core.seeding import SlotRegistry, place_third_place_teams, required_half, seed_bye_teams
from core.settings import resolve_settings

logger = logging.getLogger(__name__)


def build_global_ranking(qualified_teams: List[QualifiedTeam]) -> List[QualifiedTeam]:
    """
    Order qualifiers into one seed list.

    1sts ascending by group order, 2nds descending, 3rds ascending,
    concatenated in that order.
    """
    firsts = sorted((t for t in qualified_teams if t.pos == 1), key=lambda t: t.group_order)
    seconds = sorted((t for t in qualified_teams if t.pos == 2), key=lambda t: -t.group_order)
    thirds = sorted((t for t in qualified_teams if t.pos == 3), key=lambda t: t.group_order)
    return firsts + seconds + thirds


def _next_power_of_two(n: int) -> int:
    if n <= 1:
        return 1
    return 2 ** math.ceil(math.log2(n))


def round_name_for_matches(num_matches: int) -> str:
    """
    Name of a round with ``num_matches`` matches (or slots).

    The one naming rule used for every round. Rounds beyond 16 matches are
    called "<n>avos" so that no two rounds of a bracket share a name.
    """
    if num_matches > ROUND_MATCHES['16avos']:
        return f'{num_matches}avos'
    for name in ROUND_ORDER:
        if name in ROUND_MATCHES and num_matches >= ROUND_MATCHES[name]:
            return name
    return 'final'


def calculate_first_round(total_teams: int) -> Dict:
    """
    Work out how many teams play the first round and how many get a bye.

    The round after the first must hold a power of two teams:
    teams_playing / 2 + teams_with_bye == next_round_size.
    """
    if total_teams <= 2:
        return {
            'first_round_name': 'final',
            'teams_playing': total_teams,
            'teams_with_bye': 0,
            'next_round_size': 2,
        }

    next_round_size = _next_power_of_two(math.ceil(total_teams / 2))
    teams_playing = 2 * (total_teams - next_round_size)
    teams_with_bye = total_teams - teams_playing

    if teams_playing <= 0 or teams_playing % 2 != 0:
        teams_playing = total_teams if total_teams % 2 == 0 else total_teams - 1
        teams_with_bye = total_teams - teams_playing
        next_round_size = _next_power_of_two(teams_playing // 2)

    return {
        'first_round_name': round_name_for_matches(next_round_size),
        'teams_playing': teams_playing,
        'teams_with_bye': teams_with_bye,
        'next_round_size': next_round_size,
    }


def placeholder_label(prefix: str, round_name: str, match_number: int) -> str:
    """'Winner', 'cuartos', 2 -> 'Winner Cuartos2'."""
    return f'{prefix} {round_name[:1].upper()}{round_name[1:]}{match_number}'


def calculate_match_strength(match: PlayoffMatch, seed_index: Mapping[int, int]) -> float:
    """
    Expected winner strength of a first round match: the better (lower) seed
    index of its two teams. Byes and unknown teams count as infinitely weak.
    """
    if match.team1_id is None or match.team2_id is None:
        return math.inf
    if match.team1_id not in seed_index or match.team2_id not in seed_index:
        return math.inf
    return min(seed_index[match.team1_id], seed_index[match.team2_id])


def generate_next_round_with_byes(bye_slots: List[Optional[QualifiedTeam]],
                                  first_round_matches: List[PlayoffMatch],
                                  ranked_teams: List[QualifiedTeam],
                                  round_name: str,
                                  placeholder_prefix: str = 'Winner') -> List[PlayoffMatch]:
    """
    Build the round that follows a first round with byes.

    ``bye_slots`` has one entry per slot of this round: the bye team, or
    None where a first round winner arrives. The weakest first round match
    feeds the slot facing the best seeded bye.
    """
    seed_index = {team.team_id: i for i, team in enumerate(ranked_teams)}

    def opponent_seed(pos):
        opponent = bye_slots[SlotRegistry.partner(pos)]
        if opponent is None:
            return math.inf
        return seed_index.get(opponent.team_id, math.inf)

    needing_winner = [pos for pos, team in enumerate(bye_slots) if team is None]
    needing_winner.sort(key=lambda pos: (opponent_seed(pos), pos))

    weakest_first = sorted(
        first_round_matches,
        key=lambda m: (-calculate_match_strength(m, seed_index), m.bracket_pos),
    )
    if len(needing_winner) != len(weakest_first):
        raise BracketInvariantError(
            f'{len(needing_winner)} open slots in {round_name} but '
            f'{len(weakest_first)} first round matches to feed them'
        )
    slot_to_match = dict(zip(needing_winner, weakest_first))

    def side(pos):
        team = bye_slots[pos]
        if team is not None:
            return team.team_id, None
        source = slot_to_match[pos]
        return None, placeholder_label(placeholder_prefix, source.round, source.bracket_pos)

    matches = []
    for i in range(len(bye_slots) // 2):
        team1_id, source1 = side(2 * i)
        team2_id, source2 = side(2 * i + 1)
        matches.append(PlayoffMatch(
            round=round_name,
            bracket_pos=i + 1,
            team1_id=team1_id,
            team2_id=team2_id,
            source_team1=source1,
            source_team2=source2,
        ))
    return matches


def generate_placeholder_rounds(prev_round_name: str, prev_num_matches: int,
                                placeholder_prefix: str = 'Winner') -> List[PlayoffMatch]:
    """All remaining rounds: match i takes the winners of matches 2i-1 and 2i."""
    matches = []
    current_name = prev_round_name
    current_size = prev_num_matches

    while current_size > 1:
        num_matches = current_size // 2
        round_name = round_name_for_matches(num_matches)
        for i in range(num_matches):
            matches.append(PlayoffMatch(
                round=round_name,
                bracket_pos=i + 1,
                source_team1=placeholder_label(placeholder_prefix, current_name, 2 * i + 1),
                source_team2=placeholder_label(placeholder_prefix, current_name, 2 * i + 2),
            ))
        current_name = round_name
        current_size = num_matches

    return matches


def _seat_remaining_byes(registry: SlotRegistry, bye_teams: List[QualifiedTeam]):
    """
    Seat bye teams the seeder left out (3rd places, blocked 2nds).

    Each takes the best open slot, in its required half when it has one. With
    no slot open, the lowest quality slot held by a non-bye team is freed.
    """
    bye_ids = {team.team_id for team in bye_teams}
    for team in bye_teams:
        if team.team_id in registry.team_ids():
            continue
        half = required_half(team, registry.first_place_halves())
        pos = registry.best_open(half) if half is not None else None
        if pos is None:
            pos = registry.best_open()
        if pos is None:
            evictable = [p for p in reversed(registry.by_quality) if registry.slots[p].team_id not in bye_ids]
            if not evictable:
                raise BracketInvariantError(f'No slot available for bye team {team.team_id}')
            pos = evictable[0]
            evicted = registry.clear(pos)
            logger.debug('Team %s moved out of slot %d for bye team %s', evicted.team_id, pos, team.team_id)
        registry.place(pos, team)


def _build_first_round_with_byes(ranked_teams: List[QualifiedTeam], bye_teams: List[QualifiedTeam],
                                 playing_teams: List[QualifiedTeam], size: int, round_name: str):
    """
    Seat every team into ``size`` slots: a bye per slot, or a real match.

    Returns ``(first round entries, bye_slots)`` where ``bye_slots`` holds
    the bye team per slot and None for slots decided by a real match.
    """
    registry = SlotRegistry(size, seed_bye_teams(ranked_teams, size))

    seated = registry.team_ids()
    thirds = [t for t in ranked_teams if t.pos == 3 and t.team_id not in seated]
    unplaced_thirds = place_third_place_teams(registry, thirds)
    if unplaced_thirds:
        logger.debug('3rd-place teams not seeded: %s', [t.team_id for t in unplaced_thirds])

    _seat_remaining_byes(registry, bye_teams)

    bye_ids = {team.team_id for team in bye_teams}
    seated = registry.team_ids()
    first_halves = registry.first_place_halves()
    anchors = [pos for pos in registry.by_quality
               if registry.slots[pos] is not None and registry.slots[pos].team_id not in bye_ids]
    waiting = [team for team in playing_teams if team.team_id not in seated]

    opponents, waiting = pair_open_slots(registry, anchors, waiting, first_halves)

    empty = list(registry.open_positions())
    pairs = pair_best_vs_worst(waiting)
    if len(pairs) != len(empty) or len(waiting) != 2 * len(empty):
        raise BracketInvariantError(
            f'{len(waiting)} unseated teams cannot fill {len(empty)} empty slots'
        )
    slotted = assign_pairs_to_slots(pairs, empty, registry, first_halves)

    # One trade pass over every real match, seeded slots and empty slots alike
    positions = anchors + list(slotted)
    matchups = [[registry.slots[pos], opponents[pos]] for pos in anchors]
    matchups += [list(pair) for pair in slotted.values()]
    resolve_same_group_pairs(
        matchups,
        [registry.half_of(pos) for pos in positions],
        first_halves,
        fixed=range(len(anchors)),
    )

    opponents = {}
    for pos, (team1, team2) in zip(positions, matchups):
        if registry.is_open(pos):
            registry.place(pos, team1)
        opponents[pos] = team2

    entries = []
    bye_slots = []
    for pos, team in enumerate(registry.slots):
        if team is None:
            raise BracketInvariantError(f'Slot {pos} of {round_name} left unassigned')
        opponent = opponents.get(pos)
        entries.append(PlayoffMatch(
            round=round_name,
            bracket_pos=pos + 1,
            team1_id=team.team_id,
            team2_id=opponent.team_id if opponent is not None else None,
        ))
        bye_slots.append(team if opponent is None else None)
    return entries, bye_slots


def _build_all_bye_round(bye_teams: List[QualifiedTeam], size: int, round_name: str) -> List[PlayoffMatch]:
    registry = SlotRegistry(size, seed_bye_teams(bye_teams, size))
    seated = registry.team_ids()
    place_third_place_teams(registry, [t for t in bye_teams if t.pos == 3 and t.team_id not in seated])
    _seat_remaining_byes(registry, bye_teams)

    matches = []
    for i in range(size // 2):
        team1 = registry.slots[2 * i]
        team2 = registry.slots[2 * i + 1]
        matches.append(PlayoffMatch(
            round=round_name,
            bracket_pos=i + 1,
            team1_id=team1.team_id if team1 is not None else None,
            team2_id=team2.team_id if team2 is not None else None,
        ))
    return matches


def _check_teams(teams: List[QualifiedTeam]):
    if len(teams) < 2:
        raise InsufficientTeamsError(
            f'Cannot generate bracket: at least 2 qualified teams needed, got {len(teams)}'
        )
    seen = set()
    for team in teams:
        if team.pos not in VALID_POSITIONS:
            raise InvalidTeamError(f'Team {team.team_id} has invalid position {team.pos}')
        if team.team_id in seen:
            raise InvalidTeamError(f'Team {team.team_id} appears more than once')
        seen.add(team.team_id)


def matches_by_round(matches: List[PlayoffMatch]) -> Dict[str, List[PlayoffMatch]]:
    """Group matches by round, keeping round order."""
    rounds = {}
    for match in matches:
        rounds.setdefault(match.round, []).append(match)
    return rounds


def validate_bracket(matches: List[PlayoffMatch], ranked_teams: List[QualifiedTeam]):
    """
    Check the structure of a generated bracket, raising BracketInvariantError.

    - bracket_pos within each round is exactly 1..N
    - each round has half the matches of the one before, ending in one final
    - every team is seated exactly once in the first round
    """
    if not matches:
        raise BracketInvariantError('Bracket has no matches')

    rounds = matches_by_round(matches)
    previous = None
    for round_name, round_matches in rounds.items():
        positions = sorted(m.bracket_pos for m in round_matches)
        if positions != list(range(1, len(round_matches) + 1)):
            raise BracketInvariantError(f'Round {round_name} has bracket positions {positions}')
        if previous is not None and len(round_matches) != previous // 2:
            raise BracketInvariantError(
                f'Round {round_name} has {len(round_matches)} matches after a round of {previous}'
            )
        previous = len(round_matches)

    last_round = list(rounds)[-1]
    if last_round != 'final' or previous != 1:
        raise BracketInvariantError(f'Bracket ends in {last_round} with {previous} matches')

    first_round = rounds[matches[0].round]
    seated = [team_id for m in first_round for team_id in m.team_ids]
    expected = sorted(team.team_id for team in ranked_teams)
    if sorted(seated) != expected:
        raise BracketInvariantError(f'First round seats {sorted(seated)}, expected {expected}')


def generate_playoff_bracket(ranked_teams: List[QualifiedTeam], settings: Optional[dict] = None) -> List[PlayoffMatch]:
    """
    Generate every playoff match, first round through final.

    ``ranked_teams`` must already be in global ranking order.
    """
    _check_teams(ranked_teams)
    settings = resolve_settings(settings)
    prefix = settings['placeholder_prefix']

    info = calculate_first_round(len(ranked_teams))
    first_round_name = info['first_round_name']
    teams_playing = info['teams_playing']
    teams_with_bye = info['teams_with_bye']
    next_round_size = info['next_round_size']

    bye_teams = ranked_teams[:teams_with_bye]
    playing_teams = ranked_teams[teams_with_bye:]
    logger.debug('%d teams: %d play %s, %d byes, next round of %d',
                 len(ranked_teams), teams_playing, first_round_name, teams_with_bye, next_round_size)

    all_matches = []
    if teams_with_bye > 0 and teams_playing > 0:
        first_round, bye_slots = _build_first_round_with_byes(
            ranked_teams, bye_teams, playing_teams, next_round_size, first_round_name
        )
        real_matches = [m for m in first_round if not m.is_bye]
        next_round_name = round_name_for_matches(next_round_size // 2)
        next_round = generate_next_round_with_byes(
            bye_slots, real_matches, ranked_teams, next_round_name, prefix
        )
        all_matches.extend(first_round)
        all_matches.extend(next_round)
        all_matches.extend(generate_placeholder_rounds(next_round_name, len(next_round), prefix))
    elif teams_playing > 0:
        first_round = generate_first_round_matches(playing_teams, first_round_name)
        all_matches.extend(first_round)
        all_matches.extend(generate_placeholder_rounds(first_round_name, len(first_round), prefix))
    else:
        round_name = round_name_for_matches(next_round_size // 2)
        first_round = _build_all_bye_round(bye_teams, next_round_size, round_name)
        all_matches.extend(first_round)
        all_matches.extend(generate_placeholder_rounds(round_name, len(first_round), prefix))

    validate_bracket(all_matches, ranked_teams)
    return all_matches


def generate_playoffs(qualified_teams: Iterable[Union[QualifiedTeam, dict]],
                      group_order_map: Mapping[int, int],
                      settings: Optional[dict] = None) -> List[PlayoffMatch]:
    """
    Entry point: attach group order, rank, and generate the bracket.

    Groups missing from ``group_order_map`` sort last (order 999 by default).
    """
    settings = resolve_settings(settings)
    default_order = settings['unknown_group_order']

    teams = []
    for item in qualified_teams:
        team = item if isinstance(item, QualifiedTeam) else QualifiedTeam.from_dict(item)
        group_order = group_order_map.get(team.from_group_id)
        if group_order is None:
            logger.warning('No group order for group %s, using %s', team.from_group_id, default_order)
            group_order = default_order
        teams.append(replace(team, group_order=group_order))

    ranked = build_global_ranking(teams)
    return generate_playoff_bracket(ranked, settings)


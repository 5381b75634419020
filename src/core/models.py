"""
Value objects for playoff bracket generation.
"""
from dataclasses import dataclass, asdict
from typing import Optional


# Round names from earliest to latest; values are matches per round.
ROUND_ORDER = ('16avos', 'octavos', 'cuartos', 'semifinal', 'final', 'champion')
ROUND_MATCHES = {
    '16avos': 16,
    'octavos': 8,
    'cuartos': 4,
    'semifinal': 2,
    'final': 1,
}

VALID_POSITIONS = (1, 2, 3)


class PlayoffError(Exception):
    pass


class InsufficientTeamsError(PlayoffError):
    pass


class InvalidTeamError(PlayoffError):
    pass


class BracketInvariantError(PlayoffError):
    pass


@dataclass(frozen=True)
class QualifiedTeam:
    """A team that finished 1st, 2nd or 3rd in its group."""
    team_id: int
    from_group_id: int
    pos: int
    group_order: int = 999

    @classmethod
    def from_dict(cls, data: dict, group_order: Optional[int] = None) -> 'QualifiedTeam':
        """Build a team from a mapping, accepting ``group_id`` as an alias."""
        try:
            team_id = int(data['team_id'])
            group_id = int(data['from_group_id'] if 'from_group_id' in data else data['group_id'])
            pos = int(data['pos'])
            if group_order is None:
                group_order = int(data.get('group_order', 999))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidTeamError(f'Malformed qualified team {data!r}: {e}') from e
        if pos not in VALID_POSITIONS:
            raise InvalidTeamError(f'Team {team_id} has invalid position {pos}')
        return cls(team_id=team_id, from_group_id=group_id, pos=pos, group_order=group_order)


@dataclass(frozen=True)
class PlayoffMatch:
    """
    One match slot of a playoff round.

    Each side holds either a concrete team id or a textual source such as
    "Winner Cuartos2". A first-round bye has team1 set and side 2 empty.
    """
    round: str
    bracket_pos: int
    team1_id: Optional[int] = None
    team2_id: Optional[int] = None
    source_team1: Optional[str] = None
    source_team2: Optional[str] = None

    @property
    def is_bye(self) -> bool:
        return (self.team1_id is not None and self.team2_id is None
                and self.source_team1 is None and self.source_team2 is None)

    @property
    def is_placeholder(self) -> bool:
        return self.source_team1 is not None or self.source_team2 is not None

    @property
    def team_ids(self):
        return [t for t in (self.team1_id, self.team2_id) if t is not None]

    def to_dict(self) -> dict:
        return asdict(self)

#!/usr/bin/env python3
"""
Generate a playoff bracket from a groups YAML file.

Usage:
    python src/generate_playoffs.py data/groups.yaml
    python src/generate_playoffs.py data/groups.yaml --settings data/playoff_settings.yaml --json

Groups file format:
    groups:
      - id: 10
        name: A
        order: 1
        qualified: [101, 102]   # team ids in finishing order (1st, 2nd, 3rd)

Exit codes:
    0: Success
    1: Invalid input or bracket could not be generated
"""
import argparse
import json
import logging
import os
import sys

import yaml

from core.models import PlayoffError, QualifiedTeam, VALID_POSITIONS
from core.playoffs import generate_playoffs, matches_by_round
from core.settings import load_settings


def load_qualified_teams(file_path):
    """
    Read qualifiers from a groups YAML file.

    Returns (qualified_teams, group_order_map). A group without ``order``
    takes its 1-based position in the list.
    """
    with open(file_path, mode='r', encoding='utf-8') as file:
        try:
            data = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            raise PlayoffError(f'Failed to parse {file_path}: {e}') from e

    groups = data.get('groups', []) if isinstance(data, dict) else None
    if not isinstance(groups, list):
        raise PlayoffError(f'{file_path} must contain a "groups" list')

    qualified = []
    group_order_map = {}
    for index, group in enumerate(groups, start=1):
        if not isinstance(group, dict) or 'id' not in group:
            raise PlayoffError(f'Group #{index} in {file_path} has no id')
        team_ids = group.get('qualified') or []
        if len(team_ids) > len(VALID_POSITIONS):
            raise PlayoffError(f'Group {group.get("name", group["id"])} qualifies more than {len(VALID_POSITIONS)} teams')
        try:
            group_id = int(group['id'])
            group_order_map[group_id] = int(group.get('order', index))
            for pos, team_id in enumerate(team_ids, start=1):
                qualified.append(QualifiedTeam(team_id=int(team_id), from_group_id=group_id, pos=pos))
        except (TypeError, ValueError) as e:
            raise PlayoffError(f'Group #{index} in {file_path} is malformed: {e}') from e
    return qualified, group_order_map


def _describe_side(team_id, source):
    if team_id is not None:
        return str(team_id)
    return source or '-'


def format_bracket(matches):
    lines = []
    for round_name, round_matches in matches_by_round(matches).items():
        if lines:
            lines.append('')
        lines.append(f'# {round_name[:1].upper()}{round_name[1:]}')
        for match in round_matches:
            if match.is_bye:
                lines.append(f'{match.bracket_pos}. {match.team1_id} (bye)')
            else:
                side1 = _describe_side(match.team1_id, match.source_team1)
                side2 = _describe_side(match.team2_id, match.source_team2)
                lines.append(f'{match.bracket_pos}. {side1} vs {side2}')
    return '\n'.join(lines)


def main(argv=None):
    parser = argparse.ArgumentParser(description='Generate a playoff bracket from group stage qualifiers.')
    parser.add_argument('groups_file', nargs='?', help='Groups YAML file (default: data/groups.yaml)')
    parser.add_argument('--settings', help='Playoff settings YAML file')
    parser.add_argument('--json', action='store_true', help='Print matches as JSON')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log seeding decisions')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    groups_file = args.groups_file or os.path.join(base_dir, 'data', 'groups.yaml')

    try:
        settings = load_settings(args.settings)
        qualified, group_order_map = load_qualified_teams(groups_file)
        matches = generate_playoffs(qualified, group_order_map, settings)
    except (OSError, PlayoffError) as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps([match.to_dict() for match in matches], indent=2))
    else:
        print(format_bracket(matches))
    return 0


if __name__ == '__main__':
    sys.exit(main())

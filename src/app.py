"""
Flask web application exposing playoff bracket generation.
"""
import os
import logging
from flask import Flask, request, jsonify
from core.models import PlayoffError, BracketInvariantError, InvalidTeamError, QualifiedTeam
from core.playoffs import generate_playoffs, matches_by_round
from core.settings import load_settings
from generate_playoffs import load_qualified_teams

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
SETTINGS_FILE = os.environ.get('PLAYOFF_SETTINGS_FILE', os.path.join(DATA_DIR, 'playoff_settings.yaml'))
GROUPS_FILE = os.path.join(DATA_DIR, 'groups.yaml')

if not app.debug:
    app.logger.setLevel(logging.INFO)


def _parse_group_order(raw) -> dict:
    """JSON object keys are strings; group ids are ints."""
    if not isinstance(raw, dict):
        raise InvalidTeamError('group_order must be an object of group id -> order')
    try:
        return {int(group_id): int(order) for group_id, order in raw.items()}
    except (TypeError, ValueError) as e:
        raise InvalidTeamError(f'Invalid group_order entry: {e}') from e


def _bracket_response(matches):
    return jsonify({
        'success': True,
        'matches': [m.to_dict() for m in matches],
        'rounds': {name: len(ms) for name, ms in matches_by_round(matches).items()},
    })


@app.route('/api/playoffs/generate', methods=['POST'])
def api_generate_playoffs():
    """Generate a bracket from posted qualifiers."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    try:
        if not isinstance(data, dict):
            raise InvalidTeamError('Request body must be a JSON object')
        rows = data.get('qualified', [])
        if not isinstance(rows, list):
            raise InvalidTeamError('qualified must be a list of teams')
        qualified = [QualifiedTeam.from_dict(row) for row in rows]
        group_order = _parse_group_order(data.get('group_order', {}))
        matches = generate_playoffs(qualified, group_order, load_settings(SETTINGS_FILE))
    except BracketInvariantError:
        raise
    except PlayoffError as e:
        app.logger.warning(f'Playoff generation rejected: {e}')
        return jsonify({'success': False, 'error': str(e)}), 400

    app.logger.info(f'Generated {len(matches)} playoff matches for {len(qualified)} teams')
    return _bracket_response(matches)


@app.route('/api/playoffs/preview', methods=['GET'])
def api_preview_playoffs():
    """Generate a bracket from the groups file in the data directory."""
    if not os.path.exists(GROUPS_FILE):
        return jsonify({'success': False, 'error': 'No groups file found.'}), 404
    try:
        qualified, group_order = load_qualified_teams(GROUPS_FILE)
        matches = generate_playoffs(qualified, group_order, load_settings(SETTINGS_FILE))
    except BracketInvariantError:
        raise
    except PlayoffError as e:
        app.logger.warning(f'Playoff preview failed: {e}')
        return jsonify({'success': False, 'error': str(e)}), 400
    return _bracket_response(matches)


if __name__ == '__main__':
    app.run(debug=True)

"""
Shared pytest fixtures for playoff bracket tests.

Running tests:
    pytest tests/
"""
import pytest
import sys
import os
import yaml

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.models import QualifiedTeam


def make_groups(num_groups, per_group=2):
    """
    Qualifiers for ``num_groups`` groups (A=1, B=2, ...).

    Group g has id 10*g; its team at position p has id 100*g + p.
    Returns (qualified_teams, group_order_map).
    """
    teams = []
    group_order = {}
    for g in range(1, num_groups + 1):
        group_order[10 * g] = g
        for pos in range(1, per_group + 1):
            teams.append(QualifiedTeam(team_id=100 * g + pos, from_group_id=10 * g, pos=pos))
    return teams, group_order


def make_layout(sizes):
    """
    Qualifiers for groups of different sizes, e.g. (1, 3, 2) gives group A one
    qualifier, B three and C two. Same id scheme as ``make_groups``.
    """
    teams = []
    group_order = {}
    for g, size in enumerate(sizes, start=1):
        group_order[10 * g] = g
        for pos in range(1, size + 1):
            teams.append(QualifiedTeam(team_id=100 * g + pos, from_group_id=10 * g, pos=pos))
    return teams, group_order


def ranked_groups(num_groups, per_group=2):
    """Qualifiers with group_order attached, in global ranking order."""
    from core.playoffs import build_global_ranking
    teams, group_order = make_groups(num_groups, per_group)
    return build_global_ranking([
        QualifiedTeam(t.team_id, t.from_group_id, t.pos, group_order[t.from_group_id]) for t in teams
    ])


@pytest.fixture
def client():
    """Create a test client for the Flask app."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the app at a temporary data directory with a groups file."""
    import app as app_module

    groups_file = tmp_path / "groups.yaml"
    settings_file = tmp_path / "playoff_settings.yaml"
    groups_file.write_text(yaml.dump({'groups': [
        {'id': 10, 'name': 'A', 'order': 1, 'qualified': [101, 102]},
        {'id': 20, 'name': 'B', 'order': 2, 'qualified': [201, 202]},
        {'id': 30, 'name': 'C', 'order': 3, 'qualified': [301, 302]},
    ]}, default_flow_style=False))

    monkeypatch.setattr(app_module, 'DATA_DIR', str(tmp_path))
    monkeypatch.setattr(app_module, 'GROUPS_FILE', str(groups_file))
    monkeypatch.setattr(app_module, 'SETTINGS_FILE', str(settings_file))

    return tmp_path

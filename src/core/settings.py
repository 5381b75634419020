"""
Playoff generation settings, read from an optional YAML file.
"""
import os
from typing import Optional

import yaml

from core.models import PlayoffError


DEFAULT_SETTINGS = {
    'placeholder_prefix': 'Winner',   # "Winner Cuartos2"
    'unknown_group_order': 999,       # group_order for groups missing from the order map
}


def get_default_settings() -> dict:
    return dict(DEFAULT_SETTINGS)


def resolve_settings(settings: Optional[dict] = None) -> dict:
    """Overlay known keys of ``settings`` on the defaults."""
    resolved = get_default_settings()
    if settings:
        for key in DEFAULT_SETTINGS:
            if settings.get(key) is not None:
                resolved[key] = settings[key]
    try:
        resolved['unknown_group_order'] = int(resolved['unknown_group_order'])
    except (TypeError, ValueError) as e:
        raise PlayoffError(f"Invalid unknown_group_order: {resolved['unknown_group_order']!r}") from e
    resolved['placeholder_prefix'] = str(resolved['placeholder_prefix']).strip()
    return resolved


def load_settings(file_path: Optional[str] = None) -> dict:
    """Load settings from YAML; a missing file gives the defaults."""
    if not file_path or not os.path.exists(file_path):
        return get_default_settings()
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise PlayoffError(f'Failed to parse {file_path}: {e}') from e
    if not isinstance(data, dict):
        raise PlayoffError(f'{file_path} must contain a mapping of settings')
    return resolve_settings(data)

"""Launcher configuration.

``launcher_config.json`` holds paths and endpoints; ``config.json`` next to it
holds the account. Both are optional. String values in the launcher config may
use ``:thisdir:`` for the directory containing the file.
"""
import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, Optional

from . import metadata, mods, planner
from .executor import ASSET_WORKERS, MAX_ATTEMPTS
from .download import DEFAULT_REQUEST_TIMEOUT
from .errors import ManifestError
from .models import Account

log = logging.getLogger(__name__)

LAUNCHER_CONFIG_FILENAME = 'launcher_config.json'
ACCOUNT_CONFIG_FILENAME = 'config.json'


def replace_text(value: Any, replacements: Dict[str, str]) -> Any:
    """
    Replaces all occurrences of each key of ``replacements`` in ``value``.
    Non-string values are returned unchanged.
    """
    if not isinstance(value, str):
        return value
    for search_string, replace_string in replacements.items():
        value = value.replace(search_string, replace_string)
    return value


@dataclass(frozen=True)
class LauncherConfig:
    game_dir: pathlib.Path
    home_dir: pathlib.Path
    bundled_dir: pathlib.Path
    version_index_url: str = metadata.VERSION_INDEX_URL
    resources_url: str = planner.RESOURCES_URL
    mods_url: str = mods.MODS_URL
    fabric_api_url: str = metadata.FABRIC_API_URL
    quilt_api_url: str = metadata.QUILT_API_URL
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_attempts: int = MAX_ATTEMPTS
    asset_workers: int = ASSET_WORKERS
    progress: bool = True

    @classmethod
    def from_dict(cls, raw: Dict[str, Any], this_dir: pathlib.Path) -> 'LauncherConfig':
        data = {key: replace_text(value, {':thisdir:': str(this_dir)}) for key, value in raw.items()}

        game_dir = pathlib.Path(data.get('basepath', this_dir / '.pojlib'))
        if not game_dir.is_absolute():
            game_dir = this_dir / game_dir
        home_dir = pathlib.Path(data.get('home', game_dir / 'home'))
        bundled_dir = pathlib.Path(data.get('bundled', this_dir / 'bundled'))

        try:
            return cls(
                game_dir=game_dir.absolute(),
                home_dir=home_dir.absolute(),
                bundled_dir=bundled_dir.absolute(),
                version_index_url=data.get('version_index_url', metadata.VERSION_INDEX_URL),
                resources_url=data.get('resources_url', planner.RESOURCES_URL),
                mods_url=data.get('mods_url', mods.MODS_URL),
                fabric_api_url=data.get('fabric_api_url', metadata.FABRIC_API_URL),
                quilt_api_url=data.get('quilt_api_url', metadata.QUILT_API_URL),
                request_timeout=float(data.get('request_timeout', DEFAULT_REQUEST_TIMEOUT)),
                max_attempts=int(data.get('max_attempts', MAX_ATTEMPTS)),
                asset_workers=int(data.get('asset_workers', ASSET_WORKERS)),
                progress=bool(data.get('progress', True)),
            )
        except (TypeError, ValueError) as e:
            raise ManifestError(f"Invalid launcher configuration: {e}") from e


def _read_json(path: pathlib.Path) -> Optional[Dict[str, Any]]:
    # Small config files read synchronously at startup
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        raise ManifestError(f"Error parsing {path}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestError(f"{path} must contain a JSON object")
    return data


def load_launcher_config(path: Optional[pathlib.Path] = None) -> LauncherConfig:
    path = (path or pathlib.Path.cwd() / LAUNCHER_CONFIG_FILENAME).absolute()
    raw = _read_json(path)
    if raw is None:
        log.info(f"{path.name} not found, using defaults")
        raw = {}
    return LauncherConfig.from_dict(raw, path.parent)


def load_account(path: pathlib.Path) -> Account:
    """Reads the account from ``config.json``, falling back to an offline player."""
    cfg = {}
    try:
        cfg = _read_json(path) or {}
    except ManifestError as e:
        log.warning(f"{e}. Using default account.")
    return Account(
        username=cfg.get('auth_player_name') or 'Player',
        uuid=cfg.get('auth_uuid') or '00000000-0000-0000-0000-000000000000',
        access_token=cfg.get('auth_access_token') or '00000000000000000000000000000000',
        user_type=cfg.get('user_type') or 'msa',
    )

"""Persistence of instance descriptors under ``<gameDir>/instances/<name>``."""
import asyncio
import json
import logging
import os
import pathlib
import shutil

import aiofiles
import aiofiles.os

from .errors import IoError, ManifestError
from .models import InstanceDescriptor

log = logging.getLogger(__name__)


def instance_dir(name: str, game_dir: pathlib.Path) -> pathlib.Path:
    return game_dir / 'instances' / name


async def save_instance(descriptor: InstanceDescriptor, name: str, game_dir: pathlib.Path) -> pathlib.Path:
    """Writes ``instance.json`` through a temporary file so readers never see a partial document."""
    path = instance_dir(name, game_dir) / 'instance.json'
    tmp_path = path.with_suffix('.json.tmp')
    try:
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(descriptor.to_json(), indent=2))
        await aiofiles.os.replace(tmp_path, path)
    except OSError as e:
        log.error(f"Failed to write {path}: {e}")
        raise IoError(f"Could not write instance descriptor {path}: {e}") from e
    log.info(f"Saved instance {name} to {path}")
    return path


async def load_instance(name: str, game_dir: pathlib.Path) -> InstanceDescriptor:
    path = instance_dir(name, game_dir) / 'instance.json'
    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            content = await f.read()
    except OSError as e:
        raise IoError(f"Could not read instance descriptor {path}: {e}") from e
    try:
        return InstanceDescriptor.from_json(json.loads(content))
    except (ValueError, KeyError, TypeError) as e:
        raise ManifestError(f"Invalid instance descriptor {path}: {e!r}") from e


async def delete_instance(name: str, game_dir: pathlib.Path) -> bool:
    """Removes the instance directory. Returns False when there was nothing to delete."""
    path = instance_dir(name, game_dir)
    if not await aiofiles.os.path.isdir(path):
        return False
    try:
        await asyncio.get_running_loop().run_in_executor(None, shutil.rmtree, path)
    except OSError as e:
        raise IoError(f"Could not delete instance {path}: {e}") from e
    log.info(f"Deleted instance {name}")
    return True


def list_instances(game_dir: pathlib.Path):
    root = game_dir / 'instances'
    if not root.is_dir():
        return []
    return sorted(entry.name for entry in os.scandir(root) if entry.is_dir())

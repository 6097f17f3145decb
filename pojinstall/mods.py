"""Keeps ``mods/<versionName>`` in line with the remote mod-set manifest.

The manifest maps game versions to ``[{slug, version, download_link}, ...]``.
Entries are correlated with the cached copy by slug, so reordering the remote
list does not trigger spurious downloads.
"""
import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List

import aiofiles
import aiofiles.os

from . import download
from .errors import IoError, ManifestError

log = logging.getLogger(__name__)

MODS_URL = 'https://raw.githubusercontent.com/QuestCraftPlusPlus/Pojlib/QuestCraft/mods.json'


@dataclass(frozen=True)
class ModEntry:
    slug: str
    version: str
    download_link: str


def parse_mod_entries(doc: Any, version_name: str) -> List[ModEntry]:
    if not isinstance(doc, dict):
        raise ManifestError("Mod manifest is not an object")
    entries = doc.get(version_name)
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise ManifestError(f"Mod manifest entry for {version_name} is not a list")
    mods = []
    for entry in entries:
        try:
            mods.append(ModEntry(str(entry['slug']), str(entry['version']), str(entry['download_link'])))
        except (KeyError, TypeError) as e:
            raise ManifestError(f"Invalid mod entry for {version_name}: {entry!r}") from e
    return mods


def mod_jar_path(mods_dir: pathlib.Path, slug: str) -> pathlib.Path:
    jar_path = mods_dir / f"{slug}.jar"
    if not slug or jar_path.resolve().parent != mods_dir.resolve():
        raise ManifestError(f"Mod slug {slug!r} does not name a file in {mods_dir}")
    return jar_path


async def _load_cache(cache_path: pathlib.Path) -> Any:
    if not await download.file_exists(cache_path):
        return {}
    try:
        async with aiofiles.open(cache_path, 'r', encoding='utf-8') as f:
            return json.loads(await f.read())
    except (OSError, ValueError) as e:
        log.warning(f"Could not read cached mod manifest {cache_path}: {e}. Treating all mods as new.")
        return {}


async def sync_mods(version_name: str, game_dir: pathlib.Path, home_dir: pathlib.Path,
                    mods_url: str = MODS_URL) -> List[str]:
    """
    Downloads every remote entry whose version differs from the cached one, is
    new, or whose jar is missing, then replaces the cache. Returns the slugs
    that were downloaded.
    """
    cache_path = home_dir / 'mods.json'
    new_cache_path = home_dir / 'mods-new.json'
    mods_dir = game_dir / 'mods' / version_name

    remote_doc = await download.fetch_json(mods_url)
    remote = parse_mod_entries(remote_doc, version_name)
    if not remote:
        log.warning(f"Mod manifest lists no mods for {version_name}")

    try:
        cached: Dict[str, ModEntry] = {m.slug: m for m in parse_mod_entries(await _load_cache(cache_path), version_name)}
    except ManifestError as e:
        log.warning(f"Ignoring malformed cached mod manifest: {e}")
        cached = {}

    jar_paths = {mod.slug: mod_jar_path(mods_dir, mod.slug) for mod in remote}

    download_all = not await aiofiles.os.path.isdir(mods_dir)
    updated = []
    for mod in remote:
        jar_path = jar_paths[mod.slug]
        previous = cached.get(mod.slug)
        if download_all or previous is None or previous.version != mod.version or not await download.file_exists(jar_path):
            log.info(f"Downloading mod {mod.slug} {mod.version}")
            await download.download(mod.download_link, jar_path)
            updated.append(mod.slug)

    try:
        await aiofiles.os.makedirs(home_dir, exist_ok=True)
        async with aiofiles.open(new_cache_path, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(remote_doc, indent=2))
        await aiofiles.os.replace(new_cache_path, cache_path)
    except OSError as e:
        raise IoError(f"Could not replace mod manifest cache {cache_path}: {e}") from e

    log.info(f"Mods for {version_name} up to date ({len(updated)} downloaded)")
    return updated

import logging
import pathlib
from typing import Dict, Protocol

import aiofiles

from .errors import IoError

log = logging.getLogger(__name__)

GRAPHICS_SHIM_BLOB = 'lwjgl/lwjgl-glfw-classes-3.2.3.jar'

# Blob name -> target path relative to the game directory
BUNDLED_CONFIGS: Dict[str, str] = {
    'sodium-extra.properties': 'config/sodium-extra.properties',
    'sodium-mixins.properties': 'config/sodium-mixins.properties',
    'sodium-options.json': 'config/sodium-options.json',
    'vivecraft-config.properties': 'config/vivecraft-config.properties',
    'tweakeroo.json': 'config/tweakeroo.json',
    'smoothboot.json': 'config/smoothboot.json',
    'malilib.json': 'config/malilib.json',
    'immediatelyfast.json': 'config/immediatelyfast.json',
    'c2me.toml': 'config/c2me.toml',
    'moreculling.toml': 'config/moreculling.toml',
    'options.txt': 'options.txt',
    'servers.dat': 'servers.dat',
    'optionsviveprofiles.txt': 'optionsviveprofiles.txt',
}


class AssetProvider(Protocol):
    """Yields opaque bundled blobs by name."""

    async def read_blob(self, name: str) -> bytes: ...


class DirectoryAssetProvider:
    """Serves blobs from files below a directory, blob names being relative paths."""

    def __init__(self, root: pathlib.Path):
        self.root = root

    async def read_blob(self, name: str) -> bytes:
        blob_path = self.root / name
        try:
            async with aiofiles.open(blob_path, 'rb') as f:
                return await f.read()
        except OSError as e:
            raise IoError(f"Could not read bundled blob '{name}' from {self.root}: {e}") from e

"""Fetching and parsing of upstream metadata documents.

Every endpoint goes through ``download.fetch_json``; the ``parse_*`` functions
are pure and only look at the fields they need.
"""
import enum
import logging
import platform
from typing import Any, Dict, List, Optional

from . import download
from .errors import ManifestError, UnsupportedModloader
from .models import (
    Artifact, AssetIndex, AssetIndexRef, AssetObject, Library, ModLibrary,
    VanillaLibrary, VersionEntry, VersionManifest,
)

log = logging.getLogger(__name__)

VERSION_INDEX_URL = 'https://piston-meta.mojang.com/mc/game/version_manifest_v2.json'
FABRIC_API_URL = 'https://meta.fabricmc.net/v2/'
QUILT_API_URL = 'https://meta.quiltmc.org/v3/'


def _require(doc: Dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(doc, dict) or doc.get(key) in (None, ''):
        raise ManifestError(f"{where} is missing required field '{key}'")
    return doc[key]


# --- Rule Processing ---

def get_os_name() -> str:
    """Gets the current OS name ('windows', 'osx', 'linux')."""
    system = platform.system()
    if system == 'Windows': return 'windows'
    elif system == 'Darwin': return 'osx'
    elif system == 'Linux': return 'linux'
    else: raise OSError(f"Unsupported platform: {system}")


def get_arch_name() -> str:
    """Gets the current architecture name ('x64', 'x86', 'arm64', 'arm32')."""
    machine = platform.machine().lower()
    if machine in ['amd64', 'x86_64']: return 'x64'
    elif machine in ['i386', 'i686']: return 'x86'
    elif machine in ['arm64', 'aarch64']: return 'arm64'
    elif machine.startswith('arm') and '64' not in machine: return 'arm32'
    else:
        log.warning(f"Unsupported architecture: {platform.machine()}. Falling back to 'x64'.")
        return 'x64'


def check_rule(rule: Optional[Dict[str, Any]], os_name: str, arch_name: str) -> bool:
    """
    Checks if a single rule permits an item on the given platform.
    Feature conditions never apply since the installer has no feature flags.
    """
    if not rule or 'action' not in rule:
        return True

    applies = True
    os_rule = rule.get('os')
    if isinstance(os_rule, dict):
        if 'name' in os_rule and os_rule['name'] != os_name:
            applies = False
        if applies and 'arch' in os_rule and os_rule['arch'] != arch_name:
            applies = False
    if applies and isinstance(rule.get('features'), dict):
        applies = False

    action = rule.get('action', 'allow')
    if action == 'allow':
        return applies
    elif action == 'disallow':
        return not applies
    log.warning(f"Unknown rule action: {action}. Defaulting to allow.")
    return True


def check_item_rules(rules: Optional[List[Dict[str, Any]]], os_name: str, arch_name: str) -> bool:
    """Disallow if *any* rule prevents inclusion."""
    if not rules:
        return True
    return all(check_rule(rule, os_name, arch_name) for rule in rules)


# --- Parsing ---

def parse_version_index(doc: Any) -> List[VersionEntry]:
    versions = _require(doc, 'versions', 'Version index')
    if not isinstance(versions, list):
        raise ManifestError("Version index field 'versions' is not a list")
    return [
        VersionEntry(
            id=_require(entry, 'id', 'Version index entry'),
            type=entry.get('type', 'release'),
            url=_require(entry, 'url', 'Version index entry'),
        )
        for entry in versions
    ]


def parse_library(entry: Any, os_name: str, arch_name: str) -> Optional[Library]:
    """
    Returns None for entries that do not apply to this platform or that only
    carry native classifiers.
    """
    if not isinstance(entry, dict):
        raise ManifestError(f"Library entry is not an object: {entry!r}")
    name = entry.get('name', 'unknown-library')

    if not check_item_rules(entry.get('rules'), os_name, arch_name):
        log.debug(f"Skipping library {name}, disallowed by rules")
        return None

    downloads = entry.get('downloads')
    if downloads is not None:
        artifact = downloads.get('artifact') if isinstance(downloads, dict) else None
        if not artifact:
            log.debug(f"Skipping library {name}, no main artifact")
            return None
        return VanillaLibrary(
            name=name,
            path=_require(artifact, 'path', f"Library {name}"),
            url=_require(artifact, 'url', f"Library {name}"),
            digest=_require(artifact, 'sha1', f"Library {name}"),
        )

    return ModLibrary(
        coordinate=_require(entry, 'name', 'Library entry'),
        repository_url=_require(entry, 'url', f"Library {name}"),
    )


def parse_version_manifest(doc: Any, os_name: Optional[str] = None, arch_name: Optional[str] = None) -> VersionManifest:
    """Parses a base or modloader version manifest. Unknown fields are ignored."""
    os_name = os_name or get_os_name()
    arch_name = arch_name or get_arch_name()

    version_id = _require(doc, 'id', 'Version manifest')
    where = f"Version manifest {version_id}"

    raw_libraries = doc.get('libraries', [])
    if not isinstance(raw_libraries, list):
        raise ManifestError(f"{where} field 'libraries' is not a list")
    libraries = [lib for lib in (parse_library(e, os_name, arch_name) for e in raw_libraries) if lib is not None]

    asset_index = None
    if doc.get('assetIndex') is not None:
        info = doc['assetIndex']
        asset_index = AssetIndexRef(
            id=_require(info, 'id', f"{where} assetIndex"),
            url=_require(info, 'url', f"{where} assetIndex"),
            digest=info.get('sha1'),
        )

    client_artifact = None
    downloads = doc.get('downloads') or {}
    if not isinstance(downloads, dict):
        raise ManifestError(f"{where} field 'downloads' is not an object")
    client_info = downloads.get('client')
    if client_info is not None:
        client_artifact = Artifact(
            url=_require(client_info, 'url', f"{where} client download"),
            digest=_require(client_info, 'sha1', f"{where} client download"),
        )

    return VersionManifest(
        id=version_id,
        type=doc.get('type', 'release'),
        main_entry_point=_require(doc, 'mainClass', where),
        libraries=libraries,
        asset_index=asset_index,
        client_artifact=client_artifact,
    )


def parse_asset_index(doc: Any) -> AssetIndex:
    objects = _require(doc, 'objects', 'Asset index')
    if not isinstance(objects, dict):
        raise ManifestError("Asset index field 'objects' is not an object")
    assets = {}
    for name, details in objects.items():
        digest = _require(details, 'hash', f"Asset '{name}'")
        size = details.get('size', 0)
        if not isinstance(size, int) or size < 0:
            raise ManifestError(f"Asset '{name}' has invalid size {size!r}")
        assets[name] = AssetObject(name=name, digest=digest.lower(), size=size)
    return assets


# --- Base game endpoints ---

async def fetch_version_index(url: str = VERSION_INDEX_URL) -> List[VersionEntry]:
    return parse_version_index(await download.fetch_json(url))


async def fetch_version_manifest(url: str) -> VersionManifest:
    return parse_version_manifest(await download.fetch_json(url))


async def fetch_asset_index(url: str) -> AssetIndex:
    return parse_asset_index(await download.fetch_json(url))


def find_version(index: List[VersionEntry], version_id: str) -> VersionEntry:
    for entry in index:
        if entry.id == version_id:
            return entry
    raise ManifestError(f"Version {version_id} not found in version index")


# --- Modloaders ---

class ModloaderKind(enum.Enum):
    VANILLA = 'vanilla'
    FABRIC = 'fabric'
    QUILT = 'quilt'
    FORGE = 'forge'


def is_stable_loader_version(version: str) -> bool:
    """Barebones semver check: no pre-release part before any build metadata."""
    return '-' not in version.split('+')[0]


class ModloaderApi:
    """
    Fabric and Quilt expose the same endpoints, so one client serves both.
    """

    def __init__(self, name: str, api_url: str):
        self.name = name
        self.api_url = api_url if api_url.endswith('/') else api_url + '/'

    async def request_meta(self, method: str) -> Any:
        return await download.fetch_json(f"{self.api_url}{method}")

    async def fetch_loader_versions(self) -> List[Dict[str, Any]]:
        loaders = await self.request_meta('versions/loader')
        if not isinstance(loaders, list):
            raise ManifestError(f"{self.name} loader list is not a list")
        return loaders

    async def fetch_latest_stable_loader(self) -> str:
        loaders = await self.fetch_loader_versions()
        for loader in loaders:
            version = _require(loader, 'version', f"{self.name} loader entry")
            if loader.get('stable', is_stable_loader_version(version)):
                return version
        raise ManifestError(f"No stable {self.name} loader version available")

    async def fetch_loader_manifest(self, game_version: str, loader_version: str) -> VersionManifest:
        doc = await self.request_meta(f"versions/loader/{game_version}/{loader_version}/profile/json")
        return parse_version_manifest(doc)


def get_modloader_api(kind: ModloaderKind, fabric_api_url: str = FABRIC_API_URL,
                      quilt_api_url: str = QUILT_API_URL) -> Optional[ModloaderApi]:
    """Returns None for vanilla; raises UnsupportedModloader for loaders without an implementation."""
    if kind is ModloaderKind.VANILLA:
        return None
    elif kind is ModloaderKind.FABRIC:
        return ModloaderApi('fabric', fabric_api_url)
    elif kind is ModloaderKind.QUILT:
        return ModloaderApi('quilt', quilt_api_url)
    raise UnsupportedModloader(f"{kind.value} is not yet implemented")

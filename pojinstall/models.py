"""Parsed metadata and persisted records.

Libraries are a tagged union of two frozen dataclasses rather than a class
hierarchy; ``resolve_library`` is the single place that turns either case into
a concrete (path, url, digest) triple.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .coords import coordinate_to_path


@dataclass(frozen=True)
class VersionEntry:
    """One row of the version index."""
    id: str
    type: str
    url: str


@dataclass(frozen=True)
class Artifact:
    url: str
    digest: str


@dataclass(frozen=True)
class AssetIndexRef:
    id: str
    url: str
    digest: Optional[str] = None


@dataclass(frozen=True)
class VanillaLibrary:
    name: str
    path: str
    url: str
    digest: str
    kind: str = field(default='vanilla', init=False)


@dataclass(frozen=True)
class ModLibrary:
    coordinate: str
    repository_url: str
    kind: str = field(default='mod', init=False)

    @property
    def name(self) -> str:
        return self.coordinate


Library = Union[VanillaLibrary, ModLibrary]


@dataclass(frozen=True)
class ResolvedLibrary:
    """Relative repository path, download URL, and either the digest or the URL it is published at."""
    path: str
    url: str
    digest: Optional[str] = None
    digest_url: Optional[str] = None


def resolve_library(library: Library) -> ResolvedLibrary:
    if isinstance(library, VanillaLibrary):
        return ResolvedLibrary(library.path, library.url, digest=library.digest)
    path = coordinate_to_path(library.coordinate)
    url = f"{library.repository_url.rstrip('/')}/{path}"
    return ResolvedLibrary(path, url, digest_url=f"{url}.sha1")


@dataclass(frozen=True)
class VersionManifest:
    id: str
    type: str
    main_entry_point: str
    libraries: List[Library] = field(default_factory=list)
    asset_index: Optional[AssetIndexRef] = None
    client_artifact: Optional[Artifact] = None


@dataclass(frozen=True)
class AssetObject:
    name: str
    digest: str
    size: int

    @property
    def path(self) -> str:
        """Content-addressed location relative to ``assets``."""
        return f"objects/{self.digest[:2]}/{self.digest}"


AssetIndex = Dict[str, AssetObject]


@dataclass(frozen=True)
class Account:
    """Opaque to the installer; only these four fields reach the argument vector."""
    username: str
    uuid: str
    access_token: str
    user_type: str


@dataclass
class InstanceDescriptor:
    version_name: str
    version_type: str
    main_entry_point: str
    classpath: str
    game_dir: str
    asset_index_id: str
    assets_dir: str

    def to_json(self) -> Dict[str, str]:
        return {
            'versionName': self.version_name,
            'versionType': self.version_type,
            'mainEntryPoint': self.main_entry_point,
            'classpath': self.classpath,
            'gameDir': self.game_dir,
            'assetIndexId': self.asset_index_id,
            'assetsDir': self.assets_dir,
        }

    @classmethod
    def from_json(cls, data: Dict[str, str]) -> 'InstanceDescriptor':
        # Unknown keys are ignored so newer descriptors stay readable
        return cls(
            version_name=data['versionName'],
            version_type=data['versionType'],
            main_entry_point=data['mainEntryPoint'],
            classpath=data['classpath'],
            game_dir=data['gameDir'],
            asset_index_id=data['assetIndexId'],
            assets_dir=data['assetsDir'],
        )

    def generate_launch_args(self, account: Account) -> List[str]:
        return [
            '-cp', self.classpath,
            self.main_entry_point,
            '--username', account.username,
            '--version', self.version_name,
            '--gameDir', self.game_dir,
            '--assetsDir', self.assets_dir,
            '--assetIndex', self.asset_index_id,
            '--uuid', account.uuid.replace('-', ''),
            '--accessToken', account.access_token,
            '--userType', account.user_type,
            '--versionType', self.version_type,
        ]

"""Turns a base manifest, an optional modloader manifest and an asset index
into the concrete, grouped tasks the executor runs.
"""
import enum
import logging
import pathlib
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import ManifestError
from .models import AssetIndex, VersionManifest, resolve_library
from .provider import BUNDLED_CONFIGS, GRAPHICS_SHIM_BLOB

log = logging.getLogger(__name__)

RESOURCES_URL = 'https://resources.download.minecraft.net'
GRAPHICS_SHIM_PATH = 'lwjgl3/lwjgl-glfw-classes-3.2.3.jar'


class TaskKind(enum.Enum):
    CLIENT = 'client'
    LIBRARY = 'library'
    ASSET_INDEX = 'asset_index'
    ASSET_OBJECT = 'asset_object'
    GRAPHICS_SHIM = 'graphics_shim'
    BUNDLED_CONFIG = 'bundled_config'


@dataclass(frozen=True)
class Task:
    """
    One target path and how to obtain it. Exactly one source is set: ``url``
    for downloads, ``blob`` for bundled blobs. Downloads are gated on ``digest``,
    or on the digest published at ``digest_url``; with neither, existence is enough.
    ``verify_only`` tasks never download and are skipped when the file is absent.
    """
    kind: TaskKind
    name: str
    path: pathlib.Path
    url: Optional[str] = None
    digest: Optional[str] = None
    digest_url: Optional[str] = None
    blob: Optional[str] = None
    verify_only: bool = False


@dataclass
class InstallPlan:
    client: List[Task] = field(default_factory=list)
    base_libraries: List[Task] = field(default_factory=list)
    mod_libraries: List[Task] = field(default_factory=list)
    graphics_shim: List[Task] = field(default_factory=list)
    assets: List[Task] = field(default_factory=list)

    def groups(self):
        return {
            'Client': self.client,
            'BaseLibraries': self.base_libraries,
            'ModLibraries': self.mod_libraries,
            'GraphicsShim': self.graphics_shim,
            'Assets': self.assets,
        }


def plan_libraries(manifest: VersionManifest, game_dir: pathlib.Path) -> List[Task]:
    tasks = []
    for library in manifest.libraries:
        resolved = resolve_library(library)
        # The graphics shim stands in for upstream lwjgl, which is only ever verified
        verify_only = library.kind == 'vanilla' and 'lwjgl' in resolved.path
        tasks.append(Task(
            kind=TaskKind.LIBRARY,
            name=library.name,
            path=game_dir / 'libraries' / resolved.path,
            url=None if verify_only else resolved.url,
            digest=resolved.digest,
            digest_url=resolved.digest_url,
            verify_only=verify_only,
        ))
    return tasks


def plan_assets(base: VersionManifest, asset_index: AssetIndex, game_dir: pathlib.Path,
                resources_url: str = RESOURCES_URL) -> List[Task]:
    assets_dir = game_dir / 'assets'
    ref = base.asset_index
    tasks = [Task(
        kind=TaskKind.ASSET_INDEX,
        name=f"asset index {ref.id}",
        path=assets_dir / 'indexes' / f"{ref.id}.json",
        url=ref.url,
        digest=ref.digest,
    )]

    # Content-addressed: names sharing a digest share one object
    seen = set()
    for asset in asset_index.values():
        if asset.digest in seen:
            continue
        seen.add(asset.digest)
        tasks.append(Task(
            kind=TaskKind.ASSET_OBJECT,
            name=asset.name,
            path=assets_dir / asset.path,
            url=f"{resources_url.rstrip('/')}/{asset.digest[:2]}/{asset.digest}",
            digest=asset.digest,
        ))

    for blob, target in BUNDLED_CONFIGS.items():
        tasks.append(Task(kind=TaskKind.BUNDLED_CONFIG, name=blob, path=game_dir / target, blob=blob))
    return tasks


def plan_install(base: VersionManifest, modloader: Optional[VersionManifest], asset_index: AssetIndex,
                 game_dir: pathlib.Path, home_dir: pathlib.Path,
                 resources_url: str = RESOURCES_URL) -> InstallPlan:
    if base.client_artifact is None:
        raise ManifestError(f"Base manifest {base.id} is missing client download information")
    if base.asset_index is None:
        raise ManifestError(f"Base manifest {base.id} is missing asset index information")

    plan = InstallPlan()
    plan.client.append(Task(
        kind=TaskKind.CLIENT,
        name=f"client {base.id}",
        path=game_dir / 'versions' / base.id / f"{base.id}.jar",
        url=base.client_artifact.url,
        digest=base.client_artifact.digest,
    ))
    plan.base_libraries = plan_libraries(base, game_dir)
    if modloader is not None:
        plan.mod_libraries = plan_libraries(modloader, game_dir)
    plan.graphics_shim.append(Task(
        kind=TaskKind.GRAPHICS_SHIM,
        name='graphics shim',
        path=home_dir / GRAPHICS_SHIM_PATH,
        blob=GRAPHICS_SHIM_BLOB,
    ))
    plan.assets = plan_assets(base, asset_index, game_dir, resources_url)

    log.info(f"Planned {len(plan.base_libraries)} base libraries, {len(plan.mod_libraries)} modloader "
             f"libraries and {len(plan.assets)} asset tasks for {base.id}")
    return plan

"""Creates an instance: resolve metadata, plan, run the five task groups, then
compose the classpath and persist the descriptor.

Classpath composition waits for Client, BaseLibraries, ModLibraries and
GraphicsShim; the descriptor is only written once Assets has finished too.
"""
import logging
from typing import Optional

from . import download, metadata
from .classpath import assemble_classpath
from .config import LauncherConfig
from .errors import ManifestError
from .executor import Executor, GroupScope
from .instance import save_instance
from .models import InstanceDescriptor, VersionManifest
from .planner import plan_install
from .provider import AssetProvider, DirectoryAssetProvider

log = logging.getLogger(__name__)


async def resolve_modloader(kind: metadata.ModloaderKind, game_version: str, config: LauncherConfig,
                            loader_version: Optional[str] = None) -> Optional[VersionManifest]:
    api = metadata.get_modloader_api(kind, config.fabric_api_url, config.quilt_api_url)
    if api is None:
        return None
    if loader_version is None:
        loader_version = await api.fetch_latest_stable_loader()
    log.info(f"Using {api.name} loader {loader_version} for {game_version}")
    return await api.fetch_loader_manifest(game_version, loader_version)


async def install_instance(
    name: str,
    game_version: str,
    config: LauncherConfig,
    modloader: metadata.ModloaderKind = metadata.ModloaderKind.FABRIC,
    loader_version: Optional[str] = None,
    provider: Optional[AssetProvider] = None,
) -> InstanceDescriptor:
    log.info(f"Creating new instance: {name}")
    download.set_request_timeout(config.request_timeout)
    game_dir = config.game_dir.absolute()
    provider = provider or DirectoryAssetProvider(config.bundled_dir)

    index = await metadata.fetch_version_index(config.version_index_url)
    entry = metadata.find_version(index, game_version)
    base = await metadata.fetch_version_manifest(entry.url)
    loader = await resolve_modloader(modloader, game_version, config, loader_version)
    if base.asset_index is None:
        raise ManifestError(f"Base manifest {base.id} is missing asset index information")
    asset_index = await metadata.fetch_asset_index(base.asset_index.url)

    plan = plan_install(base, loader, asset_index, game_dir, config.home_dir, config.resources_url)
    executor = Executor(provider, max_attempts=config.max_attempts,
                        asset_workers=config.asset_workers, progress=config.progress)

    log.info(f"Starting installation of {base.id}")
    async with GroupScope('install') as scope:
        client = scope.spawn(executor.run_group('Client', plan.client))
        base_libraries = scope.spawn(executor.run_group('BaseLibraries', plan.base_libraries))
        mod_libraries = scope.spawn(executor.run_group('ModLibraries', plan.mod_libraries))
        shim = scope.spawn(executor.run_group('GraphicsShim', plan.graphics_shim))
        assets = scope.spawn(executor.run_group('Assets', plan.assets, bounded=True))

        client_r, base_r, mod_r, shim_r = await scope.join([client, base_libraries, mod_libraries, shim])
        classpath = assemble_classpath(
            [r.path for r in client_r],
            [r.path for r in base_r],
            [r.path for r in mod_r],
            shim_r[0].path,
        )
        log.info("Finished installing client, libraries and graphics shim.")
        await scope.join([assets])
        log.info("Finished installing assets.")

    descriptor = InstanceDescriptor(
        version_name=base.id,
        version_type=base.type,
        main_entry_point=loader.main_entry_point if loader is not None else base.main_entry_point,
        classpath=classpath,
        game_dir=str(game_dir),
        asset_index_id=base.asset_index.id,
        assets_dir=str(game_dir / 'assets'),
    )
    await save_instance(descriptor, name, game_dir)
    log.info("Installation process complete!")
    return descriptor

import argparse
import asyncio
import logging
import pathlib
import sys
from typing import List, Optional

from . import download, metadata
from .config import ACCOUNT_CONFIG_FILENAME, LAUNCHER_CONFIG_FILENAME, load_account, load_launcher_config
from .errors import InstallError
from .install import install_instance
from .instance import delete_instance, list_instances, load_instance
from .launch import StdoutLaunchSink, launch_instance
from .mods import sync_mods

# --- Logging Setup ---
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
log = logging.getLogger('pojinstall')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='pojinstall', description="Install and launch game instances.")
    parser.add_argument('--config', type=pathlib.Path, default=None,
                        help="path to launcher_config.json (default: ./launcher_config.json)")
    parser.add_argument('--verbose', '-v', action='store_true', help="log every task transition")
    sub = parser.add_subparsers(dest='command', required=True)

    versions = sub.add_parser('versions', help="list installable game versions")
    versions.add_argument('--all', action='store_true', help="include snapshots and old versions")

    install = sub.add_parser('install', help="create or re-install an instance")
    install.add_argument('name')
    install.add_argument('version')
    install.add_argument('--loader', choices=[k.value for k in metadata.ModloaderKind],
                         default=metadata.ModloaderKind.FABRIC.value)
    install.add_argument('--loader-version', default=None)

    launch = sub.add_parser('launch', help="sync mods and print the launch argument vector")
    launch.add_argument('name')
    launch.add_argument('--no-mods', action='store_true', help="skip mod synchronisation")

    mods = sub.add_parser('sync-mods', help="update the mods of an instance")
    mods.add_argument('name')

    delete = sub.add_parser('delete', help="delete an instance")
    delete.add_argument('name')

    sub.add_parser('list', help="list installed instances")
    return parser


async def run(args: argparse.Namespace) -> int:
    config = load_launcher_config(args.config)
    download.set_request_timeout(config.request_timeout)

    try:
        if args.command == 'versions':
            for entry in await metadata.fetch_version_index(config.version_index_url):
                if args.all or entry.type == 'release':
                    print(f"{entry.id}\t{entry.type}")
        elif args.command == 'install':
            await install_instance(args.name, args.version, config,
                                   modloader=metadata.ModloaderKind(args.loader),
                                   loader_version=args.loader_version)
        elif args.command == 'launch':
            config_dir = (args.config or pathlib.Path.cwd() / LAUNCHER_CONFIG_FILENAME).absolute().parent
            account = load_account(config_dir / ACCOUNT_CONFIG_FILENAME)
            await launch_instance(args.name, config, account, StdoutLaunchSink(), update_mods=not args.no_mods)
        elif args.command == 'sync-mods':
            descriptor = await load_instance(args.name, config.game_dir)
            await sync_mods(descriptor.version_name, config.game_dir, config.home_dir, config.mods_url)
        elif args.command == 'delete':
            if not await delete_instance(args.name, config.game_dir):
                log.warning(f"No instance named {args.name}")
                return 1
        elif args.command == 'list':
            for name in list_instances(config.game_dir):
                print(name)
    finally:
        # Ensure the shared aiohttp session is closed on exit or error
        await download.close_session()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        return asyncio.run(run(args))
    except InstallError as e:
        log.error(str(e))
        return 1
    except KeyboardInterrupt:
        log.info("Cancelled by user.")
        return 130
    except Exception:
        log.exception("--- An unexpected error occurred ---")
        return 1


if __name__ == '__main__':
    sys.exit(main())

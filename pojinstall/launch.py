import json
import logging
import sys
from typing import List, Protocol, TextIO

from . import download
from .config import LauncherConfig
from .instance import load_instance
from .models import Account
from .mods import sync_mods

log = logging.getLogger(__name__)


class LaunchSink(Protocol):
    """Receives the fully composed argument vector; the runtime behind it is not ours."""

    def launch(self, argv: List[str]) -> None: ...


class StdoutLaunchSink:
    """Writes the argument vector as a JSON array, for a wrapper script to exec."""

    def __init__(self, stream: TextIO = sys.stdout):
        self.stream = stream

    def launch(self, argv: List[str]) -> None:
        self.stream.write(json.dumps(argv) + '\n')
        self.stream.flush()


async def launch_instance(name: str, config: LauncherConfig, account: Account, sink: LaunchSink,
                          update_mods: bool = True) -> List[str]:
    download.set_request_timeout(config.request_timeout)
    descriptor = await load_instance(name, config.game_dir)
    if update_mods:
        await sync_mods(descriptor.version_name, config.game_dir, config.home_dir, config.mods_url)
    argv = descriptor.generate_launch_args(account)
    log.info(f"Launching {name} ({descriptor.version_name}, {descriptor.main_entry_point})")
    sink.launch(argv)
    return argv

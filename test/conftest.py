import asyncio
import collections
import hashlib
import json
import pathlib

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pojinstall import download
from pojinstall.config import LauncherConfig
from pojinstall.errors import IoError
from pojinstall.provider import BUNDLED_CONFIGS, GRAPHICS_SHIM_BLOB


CLIENT = b"client jar bytes"
LIB_ONE = b"first library"
LIB_TWO = b"second library"
SHIM = b"graphics shim archive"
ASSET_A = b"asset a"
ASSET_C = b"asset c"
LOADER = b"fabric loader jar"
VERSION = "1.20.1"


def sha1(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


def run(coro):
    return asyncio.run(coro)


class FakeUpstream:
    """In-process HTTP server serving bodies by path and counting hits per path.

    A body may be bytes, a JSON-able dict/list, or a callable taking the hit
    number (1-based) and returning bytes or an int status code. Paths listed in
    ``delays`` answer only after that many seconds.
    """

    def __init__(self):
        self.files = {}
        self.hits = collections.Counter()
        self.delays = {}
        app = web.Application()
        app.router.add_get('/{path:.*}', self._handle)
        self.server = TestServer(app)

    async def _handle(self, request):
        path = request.match_info['path']
        self.hits[path] += 1
        if path in self.delays:
            await asyncio.sleep(self.delays[path])
        body = self.files.get(path)
        if callable(body):
            body = body(self.hits[path])
        if body is None:
            return web.Response(status=404)
        if isinstance(body, int):
            return web.Response(status=body)
        if isinstance(body, (dict, list)):
            return web.json_response(body)
        return web.Response(body=body)

    def url(self, path: str = '') -> str:
        return str(self.server.make_url('/' + path))

    async def __aenter__(self):
        await self.server.start_server()
        return self

    async def __aexit__(self, *exc):
        await download.close_session()
        await self.server.close()


class DictAssetProvider:

    def __init__(self, blobs=None):
        self.blobs = dict(default_blobs() if blobs is None else blobs)
        self.reads = collections.Counter()

    async def read_blob(self, name: str) -> bytes:
        self.reads[name] += 1
        try:
            return self.blobs[name]
        except KeyError:
            raise IoError(f"No bundled blob named {name}")


def default_blobs():
    blobs = {name: f"bundled {name}".encode() for name in BUNDLED_CONFIGS}
    blobs[GRAPHICS_SHIM_BLOB] = SHIM
    return blobs


def vanilla_world(up: FakeUpstream, extra_libraries=(), client=CLIENT):
    """Serves a version index, one base manifest, its asset index and every artifact."""
    assets = {
        'minecraft/sounds/a.ogg': {'hash': sha1(ASSET_A), 'size': len(ASSET_A)},
        'minecraft/sounds/b.ogg': {'hash': sha1(ASSET_A), 'size': len(ASSET_A)},
        'minecraft/lang/c.json': {'hash': sha1(ASSET_C), 'size': len(ASSET_C)},
    }
    asset_index = {'objects': assets}
    asset_index_body = json.dumps(asset_index).encode()
    manifest = {
        'id': VERSION,
        'type': 'release',
        'mainClass': 'net.minecraft.client.main.Main',
        'complianceLevel': 1,
        'assetIndex': {'id': '5', 'url': up.url('indexes/5.json'), 'sha1': sha1(asset_index_body)},
        'downloads': {'client': {'url': up.url('client.jar'), 'sha1': sha1(client), 'size': len(client)}},
        'libraries': [
            {'name': 'com.example:one:1.0', 'downloads': {'artifact': {
                'path': 'com/example/one/1.0/one-1.0.jar', 'url': up.url('libs/one.jar'), 'sha1': sha1(LIB_ONE)}}},
            {'name': 'com.example:two:2.0', 'downloads': {'artifact': {
                'path': 'com/example/two/2.0/two-2.0.jar', 'url': up.url('libs/two.jar'), 'sha1': sha1(LIB_TWO)}}},
            *extra_libraries,
        ],
    }
    up.files.update({
        'index.json': {'versions': [
            {'id': VERSION, 'type': 'release', 'url': up.url(f'v/{VERSION}.json')},
            {'id': '24w14a', 'type': 'snapshot', 'url': up.url('v/24w14a.json')},
        ]},
        f'v/{VERSION}.json': manifest,
        'indexes/5.json': asset_index_body,
        'client.jar': CLIENT,
        'libs/one.jar': LIB_ONE,
        'libs/two.jar': LIB_TWO,
        f'res/{sha1(ASSET_A)[:2]}/{sha1(ASSET_A)}': ASSET_A,
        f'res/{sha1(ASSET_C)[:2]}/{sha1(ASSET_C)}': ASSET_C,
    })
    return manifest


LOADER_PATH = 'net/fabricmc/fabric-loader/0.15.11/fabric-loader-0.15.11.jar'


def fabric_world(up: FakeUpstream):
    up.files.update({
        'fabric/versions/loader': [
            {'separator': '.', 'build': 12, 'maven': 'net.fabricmc:fabric-loader:0.16.0-beta.1',
             'version': '0.16.0-beta.1', 'stable': False},
            {'separator': '.', 'build': 11, 'maven': 'net.fabricmc:fabric-loader:0.15.11',
             'version': '0.15.11', 'stable': True},
        ],
        f'fabric/versions/loader/{VERSION}/0.15.11/profile/json': {
            'id': f'fabric-loader-0.15.11-{VERSION}',
            'inheritsFrom': VERSION,
            'type': 'release',
            'mainClass': 'net.fabricmc.loader.impl.launch.knot.KnotClient',
            'arguments': {'game': [], 'jvm': []},
            'libraries': [{'name': 'net.fabricmc:fabric-loader:0.15.11', 'url': up.url('maven/')}],
        },
        f'maven/{LOADER_PATH}': LOADER,
        f'maven/{LOADER_PATH}.sha1': sha1(LOADER).encode(),
    })


def make_config(tmp_path: pathlib.Path, up: FakeUpstream, **overrides) -> LauncherConfig:
    values = dict(
        game_dir=tmp_path / 'game',
        home_dir=tmp_path / 'home',
        bundled_dir=tmp_path / 'bundled',
        version_index_url=up.url('index.json'),
        resources_url=up.url('res'),
        mods_url=up.url('mods.json'),
        fabric_api_url=up.url('fabric/'),
        quilt_api_url=up.url('quilt/'),
        progress=False,
    )
    values.update(overrides)
    return LauncherConfig(**values)


def snapshot(root: pathlib.Path):
    return {str(p.relative_to(root)): p.read_bytes() for p in sorted(root.rglob('*')) if p.is_file()}


@pytest.fixture(autouse=True)
def request_timeout():
    yield
    download.set_request_timeout(download.DEFAULT_REQUEST_TIMEOUT)


@pytest.fixture
def provider():
    return DictAssetProvider()

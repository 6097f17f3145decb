import pytest

from pojinstall import metadata
from pojinstall.errors import ManifestError, NetworkError, UnsupportedModloader
from pojinstall.models import ModLibrary, VanillaLibrary, resolve_library

from conftest import FakeUpstream, VERSION, fabric_world, run, vanilla_world


BASE = {
    'id': '1.20.1',
    'type': 'release',
    'mainClass': 'net.minecraft.client.main.Main',
    'javaVersion': {'majorVersion': 17},
    'assetIndex': {'id': '5', 'url': 'https://example.invalid/5.json', 'sha1': 'AB' * 20, 'totalSize': 1},
    'downloads': {'client': {'url': 'https://example.invalid/client.jar', 'sha1': 'cd' * 20, 'size': 3}},
    'libraries': [
        {'name': 'org.lwjgl:lwjgl:3.3.1', 'downloads': {'artifact': {
            'path': 'org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1.jar', 'url': 'https://example.invalid/lwjgl.jar',
            'sha1': 'ef' * 20}}},
        {'name': 'com.example:natives-only:1.0', 'downloads': {'classifiers': {'natives-linux': {}}}},
        {'name': 'com.example:mars-only:1.0', 'rules': [{'action': 'allow', 'os': {'name': 'mars'}}],
         'downloads': {'artifact': {'path': 'x.jar', 'url': 'https://example.invalid/x.jar', 'sha1': '00' * 20}}},
    ],
}


def test_parse_base_manifest():
    manifest = metadata.parse_version_manifest(BASE)

    assert manifest.id == '1.20.1'
    assert manifest.type == 'release'
    assert manifest.main_entry_point == 'net.minecraft.client.main.Main'
    assert manifest.client_artifact.digest == 'cd' * 20
    assert manifest.asset_index.id == '5'
    assert manifest.asset_index.digest == 'AB' * 20
    assert manifest.libraries == [VanillaLibrary(
        name='org.lwjgl:lwjgl:3.3.1',
        path='org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1.jar',
        url='https://example.invalid/lwjgl.jar',
        digest='ef' * 20,
    )]


def test_parse_modloader_manifest():
    manifest = metadata.parse_version_manifest({
        'id': 'fabric-loader-0.15.11-1.20.1',
        'inheritsFrom': '1.20.1',
        'mainClass': 'net.fabricmc.loader.impl.launch.knot.KnotClient',
        'libraries': [{'name': 'net.fabricmc:fabric-loader:0.15.11', 'url': 'https://maven.fabricmc.net/'}],
    })

    assert manifest.asset_index is None
    assert manifest.client_artifact is None
    [library] = manifest.libraries
    assert isinstance(library, ModLibrary)
    resolved = resolve_library(library)
    assert resolved.path == 'net/fabricmc/fabric-loader/0.15.11/fabric-loader-0.15.11.jar'
    assert resolved.url == f"https://maven.fabricmc.net/{resolved.path}"
    assert resolved.digest is None
    assert resolved.digest_url == f"{resolved.url}.sha1"


@pytest.mark.parametrize("missing", ['id', 'mainClass'])
def test_missing_required_field(missing):
    doc = dict(BASE)
    del doc[missing]
    with pytest.raises(ManifestError):
        metadata.parse_version_manifest(doc)


def test_incomplete_client_download():
    doc = dict(BASE, downloads={'client': {'url': 'https://example.invalid/client.jar'}})
    with pytest.raises(ManifestError):
        metadata.parse_version_manifest(doc)


def test_rules():
    assert metadata.check_item_rules(None, 'linux', 'x64')
    assert metadata.check_item_rules([{'action': 'allow'}], 'linux', 'x64')
    assert not metadata.check_item_rules([{'action': 'allow', 'os': {'name': 'osx'}}], 'linux', 'x64')
    assert metadata.check_item_rules(
        [{'action': 'allow'}, {'action': 'disallow', 'os': {'name': 'osx'}}], 'linux', 'x64')
    assert not metadata.check_item_rules(
        [{'action': 'allow'}, {'action': 'disallow', 'os': {'name': 'osx'}}], 'osx', 'arm64')


def test_parse_asset_index():
    index = metadata.parse_asset_index({'objects': {
        'icons/icon.png': {'hash': 'BDF48EF6B5D0D23BBB02E17D04865216179F510A', 'size': 3665},
    }})
    asset = index['icons/icon.png']
    assert asset.digest == 'bdf48ef6b5d0d23bbb02e17d04865216179f510a'
    assert asset.path == 'objects/bd/bdf48ef6b5d0d23bbb02e17d04865216179f510a'


@pytest.mark.parametrize("doc", [
    {},
    {'objects': {'a': {'size': 1}}},
    {'objects': {'a': {'hash': 'ab' * 20, 'size': -1}}},
])
def test_invalid_asset_index(doc):
    with pytest.raises(ManifestError):
        metadata.parse_asset_index(doc)


def test_find_version():
    index = metadata.parse_version_index({'versions': [
        {'id': '1.20.1', 'type': 'release', 'url': 'https://example.invalid/1.20.1.json', 'sha1': '00'},
    ], 'latest': {}})
    assert metadata.find_version(index, '1.20.1').url == 'https://example.invalid/1.20.1.json'
    with pytest.raises(ManifestError):
        metadata.find_version(index, '0.0.0')


def test_stable_loader_version():
    assert metadata.is_stable_loader_version('0.15.11')
    assert metadata.is_stable_loader_version('0.19.2+build.3')
    assert not metadata.is_stable_loader_version('0.20.0-beta.5')


def test_fetch_metadata_from_upstream():

    async def scenario():
        async with FakeUpstream() as up:
            vanilla_world(up)
            fabric_world(up)

            index = await metadata.fetch_version_index(up.url('index.json'))
            manifest = await metadata.fetch_version_manifest(metadata.find_version(index, VERSION).url)
            api = metadata.get_modloader_api(metadata.ModloaderKind.FABRIC, up.url('fabric/'))
            loader_version = await api.fetch_latest_stable_loader()
            loader = await api.fetch_loader_manifest(VERSION, loader_version)
            return [entry.id for entry in index], manifest, loader_version, loader

    ids, manifest, loader_version, loader = run(scenario())
    assert ids == [VERSION, '24w14a']
    assert len(manifest.libraries) == 2
    assert loader_version == '0.15.11'
    assert loader.main_entry_point == 'net.fabricmc.loader.impl.launch.knot.KnotClient'


def test_fetch_missing_document():

    async def scenario():
        async with FakeUpstream() as up:
            await metadata.fetch_version_index(up.url('nope.json'))

    with pytest.raises(NetworkError) as info:
        run(scenario())
    assert info.value.status == 404


def test_modloader_selection():
    assert metadata.get_modloader_api(metadata.ModloaderKind.VANILLA) is None
    assert metadata.get_modloader_api(metadata.ModloaderKind.QUILT).name == 'quilt'
    with pytest.raises(UnsupportedModloader):
        metadata.get_modloader_api(metadata.ModloaderKind.FORGE)


def test_downloads_must_be_an_object():
    with pytest.raises(ManifestError):
        metadata.parse_version_manifest(dict(BASE, downloads=[{'client': {}}]))


def test_unsupported_platform(monkeypatch):
    monkeypatch.setattr(metadata.platform, 'system', lambda: 'Plan9')
    with pytest.raises(OSError):
        metadata.get_os_name()

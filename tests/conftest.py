import asyncio
import json
import pathlib

import pytest

from vortex_launcher.layout import InstallLayout
from vortex_launcher.resolver import DependencyResolver
from vortex_launcher.target import WINDOWS


def write_json(path: pathlib.Path, data) -> pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding='utf-8')
    return path


class FakeRemote:
    """Stands in for the network: serves fixed payloads and records every request."""

    def __init__(self, payloads=None, failing=(), delay: float = 0.0):
        self.payloads = dict(payloads or {})
        self.failing = set(failing)
        self.delay = delay
        self.calls = []
        self.active = 0
        self.max_active = 0

    async def __call__(self, url: str) -> bytes:
        self.calls.append(url)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.delay)
            if url in self.failing:
                raise ConnectionError(f"unreachable: {url}")
            return self.payloads.get(url, b'payload')
        finally:
            self.active -= 1


@pytest.fixture
def layout(tmp_path) -> InstallLayout:
    return InstallLayout(tmp_path)


@pytest.fixture
def resolver(layout) -> DependencyResolver:
    return DependencyResolver(layout, WINDOWS)


@pytest.fixture
def write_descriptor(layout):
    """Writes ``versions/<id>/<id>.json`` and returns its path."""
    def write(version_id: str, data: dict) -> pathlib.Path:
        document = {'id': version_id, **data}
        return write_json(layout.descriptor_path(version_id), document)
    return write


@pytest.fixture
def vanilla_1_12(write_descriptor):
    """A parent descriptor in the legacy argument format."""
    return write_descriptor('1.12', {
        'type': 'release',
        'releaseTime': '2017-06-02T13:50:27+00:00',
        'assets': '1.12',
        'assetIndex': {'id': '1.12', 'url': 'https://meta.example/indexes/1.12.json', 'size': 0},
        'mainClass': 'net.minecraft.client.main.Main',
        'minecraftArguments': '--username ${auth_player_name} --version ${version_name} '
                              '--gameDir ${game_directory} --assetsDir ${assets_root} '
                              '--assetIndex ${assets_index_name} --uuid ${auth_uuid} '
                              '--accessToken ${auth_access_token} --userType ${user_type}',
        'downloads': {'client': {'url': 'https://meta.example/1.12/client.jar', 'size': 4}},
        'logging': {'client': {
            'argument': '-Dlog4j.configurationFile=${path}',
            'file': {'id': 'client-1.12.xml', 'url': 'https://meta.example/client-1.12.xml', 'size': 3},
        }},
        'libraries': [],
    })

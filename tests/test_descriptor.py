import pytest

from vortex_launcher.descriptor import (LEGACY_ASSETS, PRE_16_ASSETS, LibraryEntry, VersionDescriptor,
                                        load_descriptor, release_days)
from vortex_launcher.errors import DescriptorMissing, InvalidDescriptor
from vortex_launcher.target import WINDOWS


class TestLibraryEntry:

    def test_coordinate_path(self):
        lib = LibraryEntry.from_json({'name': 'com.mojang:patchy:1.1'})
        assert lib.path == 'com/mojang/patchy/1.1/patchy-1.1.jar'
        assert lib.base_path == 'com/mojang/patchy/1.1'

    def test_classifier_and_extension(self):
        lib = LibraryEntry.from_json({'name': 'org.lwjgl:lwjgl:3.3.1:natives-windows'})
        assert lib.path == 'org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1-natives-windows.jar'
        zipped = LibraryEntry.from_json({'name': 'de.oceanlabs.mcp:mcp_config:1.16.5@zip'})
        assert zipped.path == 'de/oceanlabs/mcp/mcp_config/1.16.5/mcp_config-1.16.5.zip'

    def test_malformed_name(self):
        assert LibraryEntry.from_json({'name': 'just-a-name'}) is None

    def test_native_path_appends_classifier(self):
        lib = LibraryEntry.from_json({
            'name': 'org.lwjgl.lwjgl:lwjgl-platform:2.9.4',
            'natives': {'windows': 'natives-windows', 'linux': 'natives-linux'},
        })
        assert lib.is_native
        assert lib.native_path(WINDOWS) == 'org/lwjgl/lwjgl/lwjgl-platform/2.9.4/lwjgl-platform-2.9.4-natives-windows.jar'

    def test_native_path_already_suffixed(self):
        lib = LibraryEntry.from_json({
            'name': 'org.lwjgl:lwjgl:3.2.2:natives-windows',
            'natives': {'windows': 'natives-windows'},
        })
        assert lib.native_path(WINDOWS) == lib.path

    def test_native_arch_placeholder(self):
        lib = LibraryEntry.from_json({
            'name': 'tv.twitch:twitch-platform:5.16',
            'natives': {'windows': 'natives-windows-${arch}'},
        })
        assert lib.native_classifier(WINDOWS) == 'natives-windows-64'

    def test_default_url_uses_repository(self):
        lib = LibraryEntry.from_json({'name': 'net.minecraftforge:forge:1.12.2', 'url': 'https://maven.example/'})
        assert lib.default_url(lib.path, 'https://libraries.example/') == \
            'https://maven.example/net/minecraftforge/forge/1.12.2/forge-1.12.2.jar'


class TestVersionDescriptor:

    def test_parent_aliases(self):
        assert VersionDescriptor.from_json({'id': 'a', 'jar': '1.7.10'}).inherits_from == '1.7.10'
        both = VersionDescriptor.from_json({'id': 'a', 'jar': 'x', 'inheritsFrom': 'y'})
        assert both.inherits_from == 'y'

    def test_structured_arguments(self):
        descriptor = VersionDescriptor.from_json({
            'id': '1.20',
            'arguments': {
                'game': ['--username', '${auth_player_name}',
                         {'rules': [{'action': 'allow', 'features': {'is_demo_user': True}}], 'value': '--demo'}],
                'jvm': [{'rules': [{'action': 'allow', 'os': {'name': 'windows'}}],
                         'value': ['-XX:HeapDumpPath=x', '-Dos.name=Windows 10']}],
            },
        })
        assert descriptor.minecraft_arguments is None
        assert descriptor.has_structured_arguments
        assert [entry.values for entry in descriptor.game_arguments] == [['--username'], ['${auth_player_name}'], ['--demo']]
        assert descriptor.jvm_arguments[0].values == ['-XX:HeapDumpPath=x', '-Dos.name=Windows 10']

    def test_legacy_and_structured_keeps_legacy(self):
        descriptor = VersionDescriptor.from_json({
            'id': 'odd', 'minecraftArguments': '--foo', 'arguments': {'game': ['--bar']},
        })
        assert descriptor.minecraft_arguments == '--foo'
        assert not descriptor.has_structured_arguments

    def test_assets_from_asset_index(self):
        descriptor = VersionDescriptor.from_json({'id': 'x', 'assetIndex': {'id': '17', 'url': 'u'}})
        assert descriptor.effective_assets == '17'

    @pytest.mark.parametrize('release_time, expected', [
        ('2013-05-01T00:00:00+00:00', PRE_16_ASSETS),
        ('2013-06-25T00:00:00+00:00', LEGACY_ASSETS),
        ('2009-05-13T20:11:00+00:00', PRE_16_ASSETS),
        (None, LEGACY_ASSETS),
    ])
    def test_legacy_assets_heuristic(self, release_time, expected):
        descriptor = VersionDescriptor.from_json({'id': 'old', 'releaseTime': release_time})
        assert descriptor.effective_assets == expected

    def test_child_overrides_parent_assets(self):
        parent = VersionDescriptor.from_json({'id': 'p', 'assets': '1.12'})
        child = VersionDescriptor.from_json({'id': 'c', 'inheritsFrom': 'p'})
        child.parent = parent
        assert child.effective_assets == '1.12'
        child.assets = '1.12-custom'
        assert child.effective_assets == '1.12-custom'

    def test_release_days_is_day_count_approximation(self):
        assert release_days('2018-07-01T00:00:00+00:00') == 2018 * 365 + 7 * 30
        assert release_days('garbage') is None


class TestLoadDescriptor:

    def test_missing(self, layout):
        with pytest.raises(DescriptorMissing) as info:
            load_descriptor(layout, 'nope')
        assert info.value.version_id == 'nope'
        assert isinstance(info.value, FileNotFoundError)

    def test_invalid_json(self, layout):
        path = layout.descriptor_path('broken')
        path.parent.mkdir(parents=True)
        path.write_text('{not json', encoding='utf-8')
        with pytest.raises(InvalidDescriptor):
            load_descriptor(layout, 'broken')

    def test_directory_name_is_id(self, write_descriptor, layout):
        write_descriptor('renamed', {'id': 'original'})
        assert load_descriptor(layout, 'renamed').id == 'renamed'

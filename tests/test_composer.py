import pathlib
import re

import pytest

from vortex_launcher.composer import (LOG4J_LOOKUP_FIX, LaunchComposer, LaunchInvocation, is_modern_format,
                                      memory_preset, offline_uuid)
from vortex_launcher.config import CMS_ARGUMENTS, G1_ARGUMENTS, Preferences
from vortex_launcher.errors import ClientBinaryMissing, InvalidDescriptor, JavaRuntimeNotFound

UUID_V3 = re.compile(r'^[0-9a-f]{8}-[0-9a-f]{4}-3[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$')


@pytest.fixture
def java(tmp_path) -> pathlib.Path:
    path = tmp_path / 'jre' / 'bin' / 'javaw.exe'
    path.parent.mkdir(parents=True)
    path.write_bytes(b'')
    return path


@pytest.fixture
def prefs(java) -> Preferences:
    return Preferences(player_name='Steve', memory_mb=1024, java_path=str(java))


@pytest.fixture
def composer(resolver) -> LaunchComposer:
    return LaunchComposer(resolver)


def install_jar(layout, version_id, data=b'jar!'):
    path = layout.client_jar(version_id)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def unresolved(arguments):
    return [argument for argument in arguments if '${' in argument]


class TestOfflineIdentity:

    def test_uuid_is_deterministic_version_3(self):
        value = offline_uuid('Steve')
        assert value == offline_uuid('Steve')
        assert UUID_V3.match(value)
        assert offline_uuid('Alex') != value

    def test_modern_format_markers(self):
        assert is_modern_format(['--username', 'x'])
        assert is_modern_format(['${auth_player_name}'])
        assert not is_modern_format(['${auth_session}', '--demo'])


class TestMemoryPreset:

    @pytest.mark.parametrize('release_time, expected', [
        ('2013-04-18T15:00:00+00:00', CMS_ARGUMENTS),
        ('2018-06-30T00:00:00+00:00', CMS_ARGUMENTS),
        ('2018-07-18T15:11:46+00:00', G1_ARGUMENTS),
        ('2023-06-07T09:35:21+00:00', G1_ARGUMENTS),
        (None, G1_ARGUMENTS),
    ])
    def test_threshold(self, release_time, expected):
        assert memory_preset(release_time) == expected


class TestCompose:

    def test_legacy_descriptor_with_markers(self, vanilla_1_12, composer, layout, prefs, java):
        install_jar(layout, '1.12')

        invocation = composer.compose('1.12', prefs)
        args = invocation.arguments

        assert invocation.executable == java
        assert invocation.working_directory == layout.root
        assert args[0] == '-Xmx1024M'
        assert args[1:1 + len(CMS_ARGUMENTS.split())] == CMS_ARGUMENTS.split()
        assert LOG4J_LOOKUP_FIX in args
        assert f"-Dlog4j.configurationFile={layout.log_config_path('client-1.12.xml')}" in args
        assert f"-Djava.library.path={layout.natives_dir('1.12')}" in args
        assert args[args.index('-cp') + 1] == str(layout.client_jar('1.12'))
        main = args.index('net.minecraft.client.main.Main')
        assert args[main + 1:main + 3] == ['--username', 'Steve']
        assert args.count('--username') == 1
        assert args[args.index('--uuid') + 1] == offline_uuid('Steve')
        assert args[args.index('--accessToken') + 1] == '0' * 32
        assert args[args.index('--assetIndex') + 1] == '1.12'
        assert unresolved(args) == []

    def test_legacy_flags_added_without_markers(self, write_descriptor, composer, layout, prefs):
        write_descriptor('ancient', {
            'mainClass': 'net.minecraft.launchwrapper.Launch',
            'releaseTime': '2011-01-01T00:00:00+00:00',
            'minecraftArguments': '${auth_session} --tweakClass x',
        })
        install_jar(layout, 'ancient')

        args = composer.compose('ancient', prefs).arguments

        assert args[args.index('--username') + 1] == 'Steve'
        assert args[args.index('--uuid') + 1] == offline_uuid('Steve')
        assert args[args.index('--assetIndex') + 1] == 'pre-1.6'
        assert args[args.index('--tweakClass') + 1] == 'x'
        assert unresolved(args) == []

    def test_structured_arguments_follow_rules(self, write_descriptor, composer, layout, prefs):
        write_descriptor('1.20', {
            'mainClass': 'net.minecraft.client.main.Main',
            'releaseTime': '2023-06-07T09:35:21+00:00',
            'assetIndex': {'id': '5', 'url': 'https://meta.example/5.json'},
            'arguments': {
                'game': [
                    '--username', '${auth_player_name}', '--version', '${version_name}',
                    '--versionType', '${version_type}', '--clientId', '${clientid}', '--xuid', '${auth_xuid}',
                    {'rules': [{'action': 'allow', 'features': {'is_demo_user': True}}], 'value': '--demo'},
                    {'rules': [{'action': 'allow', 'features': {'has_custom_resolution': True}}],
                     'value': ['--width', '${resolution_width}', '--height', '${resolution_height}']},
                ],
                'jvm': [
                    {'rules': [{'action': 'allow', 'os': {'name': 'osx'}}], 'value': ['-XstartOnFirstThread']},
                    {'rules': [{'action': 'allow', 'os': {'name': 'windows'}}],
                     'value': '-XX:HeapDumpPath=MojangTricksIntelDriversForPerformance_javaw.exe_minecraft.exe.heapdump'},
                    '-Djava.library.path=${natives_directory}',
                    '-Dminecraft.launcher.brand=${launcher_name}',
                    '-Dminecraft.launcher.version=${launcher_version}',
                    '-cp', '${classpath}',
                ],
            },
        })
        install_jar(layout, '1.20')

        args = composer.compose('1.20', prefs).arguments

        assert '-XstartOnFirstThread' not in args
        assert '--demo' not in args
        assert '--width' not in args
        assert any(arg.startswith('-XX:HeapDumpPath=') for arg in args)
        assert args.count('-cp') == 1
        assert '-Dminecraft.launcher.brand=vortex-launcher' in args
        assert args[args.index('--versionType') + 1] == 'release'
        assert '--assetIndex' not in args
        assert args[-4:] == ['--clientId', '0000', '--xuid', '0000']
        assert G1_ARGUMENTS.split()[0] in args
        assert unresolved(args) == []

    def test_child_inherits_parent_template(self, vanilla_1_12, write_descriptor, composer, layout, prefs):
        write_descriptor('1.12.2', {'inheritsFrom': '1.12'})
        install_jar(layout, '1.12.2')

        args = composer.compose('1.12.2', prefs).arguments

        assert 'net.minecraft.client.main.Main' in args
        assert args[args.index('--version') + 1] == '1.12.2'
        assert f"-Djava.library.path={layout.natives_dir('1.12.2')}" in args
        assert unresolved(args) == []

    def test_child_legacy_string_replaces_parent(self, vanilla_1_12, write_descriptor, composer, layout, prefs):
        write_descriptor('forge', {
            'inheritsFrom': '1.12',
            'mainClass': 'net.minecraft.launchwrapper.Launch',
            'minecraftArguments': '--username ${auth_player_name} --tweakClass forge.Tweaker',
        })
        install_jar(layout, 'forge')

        args = composer.compose('forge', prefs).arguments

        main = args.index('net.minecraft.launchwrapper.Launch')
        assert args[main + 1:] == ['--username', 'Steve', '--tweakClass', 'forge.Tweaker']

    def test_context_is_built_from_resolved_version(self, vanilla_1_12, composer, resolver, layout, prefs):
        artifacts, descriptor = resolver.resolve('1.12')

        context = composer.build_context(artifacts, descriptor, prefs)

        tokens = context.tokens()
        assert tokens['${auth_player_name}'] == 'Steve'
        assert tokens['${assets_index_name}'] == '1.12'
        assert tokens['${classpath}'] == str(layout.client_jar('1.12'))
        assert tokens['${natives_directory}'] == str(layout.natives_dir('1.12'))
        assert context.log_config_argument == \
            f"-Dlog4j.configurationFile={layout.log_config_path('client-1.12.xml')}"

    def test_custom_arguments_replace_preset(self, vanilla_1_12, composer, layout, prefs):
        install_jar(layout, '1.12')
        prefs.use_custom_arguments = True
        prefs.custom_arguments = '-XX:+UseZGC  -Dfoo=bar'

        args = composer.compose('1.12', prefs).arguments

        assert args[:4] == ['-Xmx1024M', '-XX:+UseZGC', '-Dfoo=bar', LOG4J_LOOKUP_FIX]
        assert CMS_ARGUMENTS.split()[0] not in args


class TestComposeErrors:

    def test_missing_client_binary(self, vanilla_1_12, composer, prefs):
        with pytest.raises(ClientBinaryMissing):
            composer.compose('1.12', prefs)

    def test_empty_client_binary(self, vanilla_1_12, composer, layout, prefs):
        install_jar(layout, '1.12', b'')
        with pytest.raises(ClientBinaryMissing):
            composer.compose('1.12', prefs)

    def test_missing_java(self, vanilla_1_12, composer, layout, prefs, tmp_path):
        install_jar(layout, '1.12')
        prefs.java_path = str(tmp_path / 'nowhere' / 'javaw.exe')
        with pytest.raises(JavaRuntimeNotFound):
            composer.compose('1.12', prefs)

    def test_no_java_discovered(self, vanilla_1_12, resolver, layout, prefs, tmp_path, monkeypatch):
        monkeypatch.delenv('JAVA_HOME', raising=False)
        install_jar(layout, '1.12')
        prefs.java_path = None
        composer = LaunchComposer(resolver, java_search_roots=[tmp_path / 'empty'])
        with pytest.raises(JavaRuntimeNotFound):
            composer.compose('1.12', prefs)

    def test_missing_main_class(self, write_descriptor, composer, layout, prefs):
        write_descriptor('headless', {})
        install_jar(layout, 'headless')
        with pytest.raises(InvalidDescriptor):
            composer.compose('headless', prefs)


class TestInvocation:

    def test_command_line_quotes_arguments_with_spaces(self):
        invocation = LaunchInvocation('x', pathlib.Path('/opt/java/bin/java'), ['-cp', 'a b.jar', 'Main'],
                                      pathlib.Path('/games'))
        assert invocation.command_line == '-cp "a b.jar" Main'
        assert invocation.render() == '"/opt/java/bin/java" -cp "a b.jar" Main'

    def test_finalize(self):
        assert LaunchComposer.finalize(['', '  ', 'C:\\games\\lib.jar', ' -cp ']) == ['C:/games/lib.jar', '-cp']

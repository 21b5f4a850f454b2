import hashlib
import logging
import pathlib
import subprocess
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional

from . import __version__
from .config import CMS_ARGUMENTS, G1_ARGUMENTS, Preferences
from .descriptor import OLD_CLIENT_THRESHOLD, ArgumentEntry, VersionDescriptor, release_days
from .errors import ClientBinaryMissing, InvalidDescriptor
from .java import resolve_java
from .replacer import replace_all, replace_text
from .resolver import ArtifactSet, DependencyResolver
from .rules import is_allowed

log = logging.getLogger(__name__)

OFFLINE_ACCESS_TOKEN = '0' * 32
MODERN_MARKERS = ('--username', '${auth_player_name}')
LOG4J_LOOKUP_FIX = '-Dlog4j2.formatMsgNoLookups=true'
DEFAULT_JVM_TEMPLATE = ('-Djava.library.path=${natives_directory}', '-cp', '${classpath}')


def offline_uuid(player_name: str) -> str:
    """Name-based UUID for offline play: MD5 of ``OfflinePlayer:<name>`` with version 3 and the RFC 4122 variant."""
    digest = hashlib.md5(f"OfflinePlayer:{player_name}".encode('utf-8')).digest()
    return str(uuid.UUID(bytes=digest, version=3))


def memory_preset(release_time: Optional[str]) -> str:
    days = release_days(release_time)
    if days is not None and days < OLD_CLIENT_THRESHOLD:
        return CMS_ARGUMENTS
    return G1_ARGUMENTS


def expand_arguments(entries: Iterable[ArgumentEntry], target, features: Optional[Mapping[str, bool]] = None) -> List[str]:
    values = []
    for entry in entries:
        if is_allowed(entry.rules, target, features):
            values.extend(entry.values)
    return values


def is_modern_format(game_arguments: Iterable[str]) -> bool:
    return any(marker in argument for argument in game_arguments for marker in MODERN_MARKERS)


@dataclass
class LaunchContext:
    """Everything token substitution needs for one launch."""
    player_name: str
    session_uuid: str
    version_id: str
    version_type: str
    asset_index_id: str
    classpath: str
    classpath_separator: str
    natives_dir: pathlib.Path
    working_dir: pathlib.Path
    assets_root: pathlib.Path
    resources_dir: pathlib.Path
    libraries_dir: pathlib.Path
    memory_mb: int
    launcher_name: str = 'vortex-launcher'
    launcher_version: str = __version__
    log_config_argument: Optional[str] = None
    window_width: int = 854
    window_height: int = 480

    def tokens(self) -> Dict[str, str]:
        return {
            '${auth_player_name}': self.player_name,
            '${version_name}': self.version_id,
            '${game_directory}': str(self.working_dir),
            '${assets_root}': str(self.assets_root),
            '${assets_index_name}': self.asset_index_id,
            '${auth_uuid}': self.session_uuid,
            '${auth_access_token}': OFFLINE_ACCESS_TOKEN,
            '${auth_session}': OFFLINE_ACCESS_TOKEN,
            '${clientid}': '0000',
            '${auth_xuid}': '0000',
            '${user_properties}': '{}',
            '${user_type}': 'mojang',
            '${version_type}': self.version_type,
            '${game_assets}': str(self.resources_dir),
            '${classpath}': self.classpath,
            '${library_directory}': str(self.libraries_dir),
            '${classpath_separator}': self.classpath_separator,
            '${natives_directory}': str(self.natives_dir),
            '${launcher_name}': self.launcher_name,
            '${launcher_version}': self.launcher_version,
            '${resolution_width}': str(self.window_width),
            '${resolution_height}': str(self.window_height),
        }


@dataclass
class LaunchInvocation:
    version_id: str
    executable: pathlib.Path
    arguments: List[str]
    working_directory: pathlib.Path

    @property
    def command_line(self) -> str:
        """Arguments as one string, single-space separated and quoted where needed."""
        return subprocess.list2cmdline(self.arguments)

    def render(self) -> str:
        return f'"{self.executable}" {self.command_line}'


class LaunchComposer:
    """
    Builds the Java invocation for an installed version.

    The descriptor chain is re-resolved on every call since libraries may
    have changed since the install. Nothing is spawned here.
    """

    def __init__(self, resolver: DependencyResolver, launcher_name: str = 'vortex-launcher',
                 launcher_version: str = __version__, java_search_roots=None):
        self.resolver = resolver
        self.launcher_name = launcher_name
        self.launcher_version = launcher_version
        self.java_search_roots = java_search_roots

    @property
    def layout(self):
        return self.resolver.layout

    @property
    def target(self):
        return self.resolver.target

    def compose(self, version_id: str, preferences: Preferences) -> LaunchInvocation:
        artifacts, descriptor = self.resolver.resolve(version_id)
        return self.compose_resolved(artifacts, descriptor, preferences)

    def compose_resolved(self, artifacts: ArtifactSet, descriptor: VersionDescriptor,
                         preferences: Preferences) -> LaunchInvocation:
        version_id = descriptor.id
        layout = self.layout

        client_jar = layout.client_jar(version_id)
        if not client_jar.is_file() or client_jar.stat().st_size < 1:
            raise ClientBinaryMissing(version_id, client_jar)

        main_class = descriptor.effective_main_class
        if not main_class:
            raise InvalidDescriptor(version_id, "no main class declared")

        executable = resolve_java(preferences.java_path, self.target, self.java_search_roots)

        jvm_template, game_template = self.select_templates(descriptor)
        context = self.build_context(artifacts, descriptor, preferences)

        if preferences.use_custom_arguments:
            tuning = preferences.custom_arguments
        else:
            tuning = memory_preset(descriptor.release_time)

        arguments = [f"-Xmx{context.memory_mb}M", *tuning.split(), LOG4J_LOOKUP_FIX]
        if context.log_config_argument:
            arguments.append(context.log_config_argument)
        arguments.extend(jvm_template or DEFAULT_JVM_TEMPLATE)
        arguments.append(main_class)
        arguments.extend(game_template)

        if not is_modern_format(game_template):
            log.debug(f"{version_id} uses the legacy argument format, adding identity flags")
            arguments.extend([
                '--username', context.player_name,
                '--version', version_id,
                '--gameDir', str(context.working_dir),
                '--assetsDir', str(context.assets_root),
                '--assetIndex', context.asset_index_id,
                '--uuid', context.session_uuid,
                '--accessToken', OFFLINE_ACCESS_TOKEN,
                '--userType', 'mojang',
            ])

        arguments = self.finalize(replace_all(arguments, context.tokens()))
        log.info(f"Composed launch of {version_id} with {len(arguments)} arguments")
        return LaunchInvocation(version_id, executable, arguments, context.working_dir)

    def select_templates(self, descriptor: VersionDescriptor):
        """
        Returns the (jvm, game) argument templates of a descriptor chain.

        Structured lists are merged parent first. A legacy argument string on
        the child replaces the game arguments; one on the parent is used only
        when no descriptor declares structured game arguments.
        """
        chain = descriptor.chain()
        jvm = []
        for owner in chain:
            jvm.extend(expand_arguments(owner.jvm_arguments, self.target))

        if descriptor.minecraft_arguments:
            game = descriptor.minecraft_arguments.split()
        elif any(owner.game_arguments for owner in chain):
            game = []
            for owner in chain:
                game.extend(expand_arguments(owner.game_arguments, self.target))
        elif descriptor.parent is not None and descriptor.parent.minecraft_arguments:
            game = descriptor.parent.minecraft_arguments.split()
        else:
            game = []
        return jvm, game

    def build_context(self, artifacts: ArtifactSet, descriptor: VersionDescriptor,
                      preferences: Preferences) -> LaunchContext:
        layout = self.layout
        log_argument = None
        logging_config = descriptor.effective_logging
        if logging_config:
            log_argument = replace_text(logging_config.argument,
                                        {'${path}': str(layout.log_config_path(logging_config.file_id))})

        return LaunchContext(
            player_name=preferences.player_name,
            session_uuid=offline_uuid(preferences.player_name),
            version_id=descriptor.id,
            version_type=descriptor.type,
            asset_index_id=descriptor.effective_assets,
            classpath=artifacts.classpath_string,
            classpath_separator=self.target.classpath_separator,
            natives_dir=layout.natives_dir(descriptor.id),
            working_dir=layout.root,
            assets_root=layout.assets_dir,
            resources_dir=layout.resources_dir,
            libraries_dir=layout.libraries_dir,
            memory_mb=int(preferences.memory_mb),
            launcher_name=self.launcher_name,
            launcher_version=self.launcher_version,
            log_config_argument=log_argument,
            window_width=preferences.window_width,
            window_height=preferences.window_height,
        )

    @staticmethod
    def finalize(arguments: List[str]) -> List[str]:
        """Drops blank arguments and uses forward slashes in paths."""
        return [argument.strip().replace('\\', '/') for argument in arguments if argument and argument.strip()]

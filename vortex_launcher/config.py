import dataclasses
import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from . import __version__
from .errors import InvalidPreferences
from .replacer import replace_text

log = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = 'launcher_config.json'
DEFAULT_MANIFEST_URL = 'https://launchermeta.mojang.com/mc/game/version_manifest.json'

G1_ARGUMENTS = ('-Xss1M -XX:+UnlockExperimentalVMOptions -XX:+UseG1GC -XX:G1NewSizePercent=20 '
                '-XX:G1ReservePercent=20 -XX:MaxGCPauseMillis=50 -XX:G1HeapRegionSize=32M')
CMS_ARGUMENTS = '-XX:+UseConcMarkSweepGC -XX:+CMSIncrementalMode -XX:-UseAdaptiveSizePolicy -Xmn128M'

MIN_MEMORY_MB = 600
MIN_PLAYER_NAME = 3


@dataclass
class LauncherConfig:
    root: pathlib.Path = pathlib.Path('.')
    manifest_url: str = DEFAULT_MANIFEST_URL
    libraries_url: str = 'https://libraries.minecraft.net/'
    resources_url: str = 'https://resources.download.minecraft.net/'
    platform: str = 'windows'
    launcher_name: str = 'vortex-launcher'
    launcher_version: str = __version__
    timeout: float = 30.0
    max_attempts: int = 5
    retry_delay: float = 0.5
    failure_tolerance: int = 5

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> 'LauncherConfig':
        known = {f.name for f in dataclasses.fields(cls)}
        values = {}
        for key, value in raw.items():
            if key not in known:
                log.warning(f"Unknown launcher config key: {key}")
                continue
            values[key] = value
        if 'root' in values:
            values['root'] = pathlib.Path(values['root'])
        return cls(**values)


def load_config(path: Optional[pathlib.Path] = None) -> LauncherConfig:
    """
    Loads the launcher config file. Every string value has ``:thisdir:``
    replaced with the directory holding the file. A missing or unreadable
    file falls back to defaults rooted at that directory.
    """
    path = pathlib.Path(path or DEFAULT_CONFIG_FILENAME).resolve()
    this_dir = str(path.parent)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except FileNotFoundError:
        log.info(f"{path.name} not found, using defaults.")
        return LauncherConfig(root=path.parent)
    except json.JSONDecodeError as e:
        log.warning(f"Could not parse {path.name}: {e}. Using defaults.")
        return LauncherConfig(root=path.parent)

    patched = {key: replace_text(value, {':thisdir:': this_dir}) if isinstance(value, str) else value
               for key, value in raw.items()}
    patched.setdefault('root', this_dir)
    return LauncherConfig.from_mapping(patched)


@dataclass
class Preferences:
    """User choices for one install or launch. Persisting them is the caller's business."""
    player_name: str = 'Player'
    memory_mb: int = 2500
    java_path: Optional[str] = None
    use_custom_arguments: bool = False
    custom_arguments: str = G1_ARGUMENTS
    download_threads: int = 20
    parallel_download: bool = True
    save_launch_string: bool = False
    window_width: int = 854
    window_height: int = 480

    # Keys of the original settings file.
    SETTINGS_KEYS = {
        'PlayerName': 'player_name',
        'RamAmount': 'memory_mb',
        'CustomJavaPath': 'java_path',
        'UseCustomParameters': 'use_custom_arguments',
        'LaunchArguments': 'custom_arguments',
        'DownloadThreads': 'download_threads',
        'AsyncDownload': 'parallel_download',
        'SaveLaunchString': 'save_launch_string',
    }

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> 'Preferences':
        known = {f.name for f in dataclasses.fields(cls)}
        values = {}
        for key, value in raw.items():
            name = cls.SETTINGS_KEYS.get(key, key)
            if name in known:
                values[name] = value
        if not raw.get('UseCustomJava', True):
            values.pop('java_path', None)
        prefs = cls(**values)
        try:
            prefs.memory_mb = int(prefs.memory_mb)
        except (TypeError, ValueError):
            raise InvalidPreferences(f"Invalid RAM amount: {prefs.memory_mb!r}") from None
        return prefs

    def normalized(self) -> 'Preferences':
        """Validated copy: spaces removed from the name, memory raised to the minimum."""
        name = (self.player_name or '').replace(' ', '')
        if len(name) < MIN_PLAYER_NAME:
            raise InvalidPreferences(f"Player name must be at least {MIN_PLAYER_NAME} characters long")
        try:
            memory = int(self.memory_mb)
        except (TypeError, ValueError):
            raise InvalidPreferences(f"Invalid RAM amount: {self.memory_mb!r}") from None
        if memory < MIN_MEMORY_MB:
            log.warning(f"Allocated memory {memory} MB is too low, using {MIN_MEMORY_MB} MB")
            memory = MIN_MEMORY_MB
        return dataclasses.replace(self, player_name=name, memory_mb=memory,
                                   download_threads=max(1, int(self.download_threads)))

"""
Version descriptors: the per-version JSON documents stored at
``versions/<id>/<id>.json``.

Descriptors are parsed fresh from disk every time a version is resolved;
nothing here caches them.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import DescriptorMissing, InvalidDescriptor
from .layout import InstallLayout
from .rules import PlatformRule, parse_rules
from .target import TargetPlatform

log = logging.getLogger(__name__)

# Day counts compared against ``year * 365 + month * 30`` of a release date.
# Not calendar accurate; kept as-is so versions fall on the same side of
# each threshold as in other launchers using the same heuristic.
LEGACY_ASSETS_THRESHOLD = 734925
OLD_CLIENT_THRESHOLD = 736780

PRE_16_ASSETS = 'pre-1.6'
LEGACY_ASSETS = 'legacy'
LEGACY_LAYOUT_ASSETS = (PRE_16_ASSETS, LEGACY_ASSETS)


def release_days(release_time: Optional[str]) -> Optional[int]:
    """Returns ``year * 365 + month * 30`` for a ``YYYY-MM-...`` timestamp."""
    if not release_time:
        return None
    parts = release_time.split('-')
    try:
        return int(parts[0]) * 365 + int(parts[1]) * 30
    except (IndexError, ValueError):
        log.warning(f"Unparsable release time: {release_time}")
        return None


@dataclass
class DownloadRef:
    url: str
    size: int = 0
    id: Optional[str] = None

    @classmethod
    def from_json(cls, raw: Any) -> Optional['DownloadRef']:
        if not isinstance(raw, dict) or not raw.get('url'):
            return None
        return cls(raw['url'], int(raw.get('size') or 0), raw.get('id'))


@dataclass
class LoggingConfig:
    file_id: str
    url: str
    size: int = 0
    argument: str = '-Dlog4j.configurationFile=${path}'

    @classmethod
    def from_json(cls, raw: Any) -> Optional['LoggingConfig']:
        client = raw.get('client') if isinstance(raw, dict) else None
        file_info = client.get('file') if isinstance(client, dict) else None
        if not isinstance(file_info, dict) or not file_info.get('id'):
            return None
        argument = client.get('argument') or cls.argument
        return cls(file_info['id'], file_info.get('url', ''), int(file_info.get('size') or 0), argument)


@dataclass
class ArgumentEntry:
    """One entry of a structured argument list: literal values gated by rules."""
    values: List[str]
    rules: List[PlatformRule] = field(default_factory=list)

    @classmethod
    def from_json(cls, raw: Any) -> Optional['ArgumentEntry']:
        if isinstance(raw, str):
            return cls([raw])
        if isinstance(raw, dict):
            value = raw.get('value')
            if isinstance(value, str):
                values = [value]
            elif isinstance(value, list):
                values = [v for v in value if isinstance(v, str)]
            else:
                log.warning(f"Unsupported value type in argument object: {value!r}")
                return None
            return cls(values, parse_rules(raw.get('rules')))
        log.warning(f"Unsupported argument format: {raw!r}")
        return None


@dataclass
class LibraryEntry:
    name: str
    group: str
    artifact: str
    version: str
    classifier: Optional[str] = None
    extension: str = 'jar'
    rules: List[PlatformRule] = field(default_factory=list)
    download: Optional[DownloadRef] = None
    classifier_downloads: Dict[str, DownloadRef] = field(default_factory=dict)
    natives: Dict[str, str] = field(default_factory=dict)
    repository_url: Optional[str] = None

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> Optional['LibraryEntry']:
        name = raw.get('name', '')
        coordinates, _, extension = name.partition('@')
        parts = coordinates.split(':')
        if len(parts) < 3:
            log.warning(f"Skipping library with malformed name: {name!r}")
            return None
        downloads = raw.get('downloads') or {}
        classifiers = {}
        for key, value in (downloads.get('classifiers') or {}).items():
            ref = DownloadRef.from_json(value)
            if ref:
                classifiers[key] = ref
        return cls(
            name=name,
            group=parts[0],
            artifact=parts[1],
            version=parts[2],
            classifier=parts[3] if len(parts) > 3 else None,
            extension=extension or 'jar',
            rules=parse_rules(raw.get('rules')),
            download=DownloadRef.from_json(downloads.get('artifact')),
            classifier_downloads=classifiers,
            natives=dict(raw.get('natives') or {}),
            repository_url=raw.get('url'),
        )

    @property
    def base_path(self) -> str:
        return f"{self.group.replace('.', '/')}/{self.artifact}/{self.version}"

    @property
    def path(self) -> str:
        """``group/artifact/version/artifact-version[-classifier].ext`` with '/' separators."""
        file_name = f"{self.artifact}-{self.version}"
        if self.classifier:
            file_name += f"-{self.classifier}"
        return f"{self.base_path}/{file_name}.{self.extension}"

    @property
    def is_native(self) -> bool:
        return bool(self.natives)

    def native_classifier(self, target: TargetPlatform) -> str:
        classifier = self.natives.get(target.os_name) or target.natives_classifier
        return classifier.replace('${arch}', target.arch_bits)

    def native_path(self, target: TargetPlatform) -> str:
        """Path of the native bundle, suffixed with the classifier unless the coordinate already is."""
        classifier = self.native_classifier(target)
        stem, _, extension = self.path.rpartition('.')
        if stem.endswith(classifier):
            return self.path
        return f"{stem}-{classifier}.{extension}"

    def default_url(self, relative_path: str, libraries_url: str) -> str:
        base = self.repository_url or libraries_url
        return f"{base.rstrip('/')}/{relative_path}"


@dataclass
class VersionDescriptor:
    id: str
    inherits_from: Optional[str] = None
    assets: Optional[str] = None
    asset_index: Optional[DownloadRef] = None
    main_class: Optional[str] = None
    release_time: Optional[str] = None
    type: str = 'release'
    minecraft_arguments: Optional[str] = None
    game_arguments: List[ArgumentEntry] = field(default_factory=list)
    jvm_arguments: List[ArgumentEntry] = field(default_factory=list)
    libraries: List[LibraryEntry] = field(default_factory=list)
    logging: Optional[LoggingConfig] = None
    client: Optional[DownloadRef] = None
    parent: Optional['VersionDescriptor'] = None

    @classmethod
    def from_json(cls, raw: Dict[str, Any], version_id: Optional[str] = None) -> 'VersionDescriptor':
        if not isinstance(raw, dict):
            raise InvalidDescriptor(version_id or '?', "top-level value is not an object")

        # 'jar' is the older name of the inheritance link; 'inheritsFrom' wins when both are set.
        inherits_from = raw.get('inheritsFrom') or raw.get('jar') or None

        arguments = raw.get('arguments') if isinstance(raw.get('arguments'), dict) else {}
        game = [e for e in map(ArgumentEntry.from_json, arguments.get('game') or []) if e]
        jvm = [e for e in map(ArgumentEntry.from_json, arguments.get('jvm') or []) if e]
        legacy = raw.get('minecraftArguments') or None
        if legacy and (game or jvm):
            log.warning(f"Descriptor {raw.get('id', version_id)} declares both legacy and structured "
                        f"arguments; using the legacy string.")
            game, jvm = [], []

        libraries = []
        for lib in raw.get('libraries') or []:
            entry = LibraryEntry.from_json(lib) if isinstance(lib, dict) else None
            if entry:
                libraries.append(entry)

        asset_index = DownloadRef.from_json(raw.get('assetIndex'))
        return cls(
            id=raw.get('id') or version_id,
            inherits_from=inherits_from,
            assets=raw.get('assets') or (asset_index.id if asset_index else None),
            asset_index=asset_index,
            main_class=raw.get('mainClass'),
            release_time=raw.get('releaseTime'),
            type=raw.get('type') or 'release',
            minecraft_arguments=legacy,
            game_arguments=game,
            jvm_arguments=jvm,
            libraries=libraries,
            logging=LoggingConfig.from_json(raw.get('logging')),
            client=DownloadRef.from_json((raw.get('downloads') or {}).get('client')),
        )

    @property
    def has_structured_arguments(self) -> bool:
        return bool(self.game_arguments or self.jvm_arguments)

    def chain(self) -> List['VersionDescriptor']:
        """Parent first, then this descriptor."""
        return [self.parent, self] if self.parent else [self]

    @property
    def effective_assets(self) -> str:
        if self.assets:
            return self.assets
        if self.parent is not None and self.parent.assets:
            return self.parent.assets
        days = release_days(self.release_time)
        if self.parent is None and days is not None and days < LEGACY_ASSETS_THRESHOLD:
            return PRE_16_ASSETS
        return LEGACY_ASSETS

    @property
    def effective_asset_index(self) -> Optional[DownloadRef]:
        if self.asset_index:
            return self.asset_index
        return self.parent.asset_index if self.parent else None

    @property
    def effective_logging(self) -> Optional[LoggingConfig]:
        if self.logging:
            return self.logging
        return self.parent.logging if self.parent else None

    @property
    def effective_main_class(self) -> Optional[str]:
        if self.main_class:
            return self.main_class
        return self.parent.main_class if self.parent else None

    @property
    def needs_legacy_assets(self) -> bool:
        return self.effective_assets in LEGACY_LAYOUT_ASSETS


def load_descriptor(layout: InstallLayout, version_id: str) -> VersionDescriptor:
    """Reads and parses ``versions/<id>/<id>.json``."""
    path = layout.descriptor_path(version_id)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except FileNotFoundError:
        raise DescriptorMissing(version_id, path) from None
    except json.JSONDecodeError as e:
        raise InvalidDescriptor(version_id, str(e)) from e
    descriptor = VersionDescriptor.from_json(raw, version_id)
    # The directory name is authoritative; some modded descriptors carry a stale id.
    descriptor.id = version_id
    return descriptor

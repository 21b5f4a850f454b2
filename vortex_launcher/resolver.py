import logging
import pathlib
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

from .assets import read_asset_index
from .descriptor import DownloadRef, LibraryEntry, VersionDescriptor, load_descriptor
from .errors import DescriptorMissing, InheritanceTooDeep, ParentDescriptorMissing
from .layout import InstallLayout
from .rules import is_allowed
from .target import WINDOWS, TargetPlatform

log = logging.getLogger(__name__)

DEFAULT_LIBRARIES_URL = 'https://libraries.minecraft.net/'
DEFAULT_RESOURCES_URL = 'https://resources.download.minecraft.net/'


@dataclass
class ArtifactTask:
    """One file to fetch. A size of 0 means the expected size is unknown."""
    url: str
    path: pathlib.Path
    size: int = 0


@dataclass
class NativeBundle:
    """An archive whose shared libraries are extracted into a version's natives directory."""
    name: str
    archive: pathlib.Path
    destination: pathlib.Path


@dataclass
class ArtifactSet:
    version_id: str
    separator: str
    tasks: List[ArtifactTask] = field(default_factory=list)
    classpath: List[pathlib.Path] = field(default_factory=list)
    natives: List[NativeBundle] = field(default_factory=list)
    asset_index_id: Optional[str] = None
    asset_index_task: Optional[ArtifactTask] = None
    assets_expanded: bool = False

    def __len__(self):
        return len(self.tasks)

    @property
    def classpath_string(self) -> str:
        return self.separator.join(str(entry) for entry in self.classpath)


class DependencyResolver:
    """
    Computes what a version needs on disk: libraries filtered by platform
    rules, native bundles, the client binary, logging config and assets.

    Inheritance is resolved one level deep. A parent that itself declares
    a parent raises `InheritanceTooDeep` instead of being partially merged.
    """

    def __init__(self, layout: InstallLayout, target: TargetPlatform = WINDOWS,
                 libraries_url: str = DEFAULT_LIBRARIES_URL,
                 resources_url: str = DEFAULT_RESOURCES_URL):
        self.layout = layout
        self.target = target
        self.libraries_url = libraries_url
        self.resources_url = resources_url

    def load_chain(self, version_id: str) -> VersionDescriptor:
        """Loads a descriptor and, when it declares one, its parent."""
        descriptor = load_descriptor(self.layout, version_id)
        parent_id = descriptor.inherits_from
        if not parent_id:
            log.info(f"Manifest {version_id} does not inherit from another version.")
            return descriptor

        if parent_id == version_id:
            raise InheritanceTooDeep([version_id, parent_id])
        try:
            parent = load_descriptor(self.layout, parent_id)
        except DescriptorMissing as e:
            raise ParentDescriptorMissing(version_id, parent_id, e.path) from None
        if parent.inherits_from:
            raise InheritanceTooDeep([version_id, parent_id, parent.inherits_from])

        log.info(f"Resolving {version_id} inheriting from {parent_id}")
        descriptor.parent = parent
        return descriptor

    def resolve(self, version_id: str) -> Tuple[ArtifactSet, VersionDescriptor]:
        descriptor = self.load_chain(version_id)
        layout = self.layout
        artifacts = ArtifactSet(version_id, self.target.classpath_separator)

        index_ref = descriptor.effective_asset_index
        artifacts.asset_index_id = descriptor.effective_assets
        if index_ref:
            artifacts.asset_index_task = ArtifactTask(
                index_ref.url, layout.asset_index_path(artifacts.asset_index_id), index_ref.size)
            artifacts.tasks.append(artifacts.asset_index_task)

        logging_config = descriptor.effective_logging
        if logging_config and logging_config.url:
            artifacts.tasks.append(ArtifactTask(
                logging_config.url, layout.log_config_path(logging_config.file_id), logging_config.size))

        client_task = self._client_task(descriptor)
        if client_task:
            artifacts.tasks.append(client_task)

        scheduled: Set[str] = set()
        natives_dir = layout.natives_dir(version_id)
        for owner in descriptor.chain():
            for library in owner.libraries:
                if not is_allowed(library.rules, self.target):
                    log.debug(f"Skipping library due to rules: {library.name}")
                    continue
                if library.is_native:
                    self._add_native(artifacts, library, natives_dir, scheduled)
                    # Native entries normally stay off the classpath. Newer descriptors give
                    # some of them a plain artifact as well, and that jar does go on it.
                    if library.download is None:
                        continue
                self._add_library(artifacts, library, scheduled)

        artifacts.classpath.append(layout.client_jar(version_id))
        self.expand_assets(artifacts)

        log.info(f"Resolved {version_id}: {len(artifacts.tasks)} files, "
                 f"{len(artifacts.classpath)} classpath entries, {len(artifacts.natives)} native bundles")
        return artifacts, descriptor

    def expand_assets(self, artifacts: ArtifactSet) -> int:
        """Appends one task per asset object once the asset index is on disk."""
        if artifacts.assets_expanded or not artifacts.asset_index_id:
            return 0
        tasks = self.asset_object_tasks(artifacts.asset_index_id)
        if tasks is None:
            return 0
        artifacts.tasks.extend(tasks)
        artifacts.assets_expanded = True
        return len(tasks)

    def asset_object_tasks(self, index_id: str) -> Optional[List[ArtifactTask]]:
        index = read_asset_index(self.layout.asset_index_path(index_id))
        if index is None:
            return None
        tasks = []
        seen: Set[str] = set()
        base = self.resources_url.rstrip('/')
        for asset in index.objects.values():
            # Distinct names may share content; fetch each object once.
            if asset.hash in seen:
                continue
            seen.add(asset.hash)
            tasks.append(ArtifactTask(
                f"{base}/{asset.hash[:2]}/{asset.hash}",
                self.layout.asset_object_path(asset.hash),
                asset.size,
            ))
        log.info(f"Asset index {index_id} lists {len(tasks)} objects")
        return tasks

    def _client_task(self, descriptor: VersionDescriptor) -> Optional[ArtifactTask]:
        if descriptor.client:
            return self._task(descriptor.client, self.layout.client_jar(descriptor.id))
        parent = descriptor.parent
        if parent is not None and parent.client:
            # The parent's binary is copied over the child's at launch when the child has none.
            return self._task(parent.client, self.layout.client_jar(parent.id))
        log.warning(f"No client download declared for {descriptor.id}")
        return None

    def _add_library(self, artifacts: ArtifactSet, library: LibraryEntry, scheduled: Set[str]):
        relative = library.path
        if relative in scheduled:
            log.debug(f"Library {library.name} already scheduled, skipping")
            return
        scheduled.add(relative)
        path = self.layout.library_path(relative)
        ref = library.download or DownloadRef(library.default_url(relative, self.libraries_url))
        artifacts.tasks.append(self._task(ref, path))
        artifacts.classpath.append(path)

    def _add_native(self, artifacts: ArtifactSet, library: LibraryEntry,
                    natives_dir: pathlib.Path, scheduled: Set[str]):
        if self.target.os_name not in library.natives:
            log.debug(f"Library {library.name} has no natives for {self.target.os_name}")
            return
        relative = library.native_path(self.target)
        if relative in scheduled:
            return
        scheduled.add(relative)
        path = self.layout.library_path(relative)
        ref = library.classifier_downloads.get(library.native_classifier(self.target))
        if ref is None:
            ref = DownloadRef(library.default_url(relative, self.libraries_url))
        artifacts.tasks.append(self._task(ref, path))
        artifacts.natives.append(NativeBundle(library.name, path, natives_dir))

    @staticmethod
    def _task(ref: DownloadRef, path: pathlib.Path) -> ArtifactTask:
        return ArtifactTask(ref.url, path, ref.size)

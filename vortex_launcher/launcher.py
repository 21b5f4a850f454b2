import asyncio
import enum
import logging
import shutil
from typing import List, Optional, Tuple

from .assets import AssetMaterializer
from .composer import LaunchComposer, LaunchInvocation
from .config import LauncherConfig, Preferences
from .descriptor import VersionDescriptor, load_descriptor
from .download import DownloadOrchestrator, Fetch, ProgressCallback, RunOutcome
from .errors import DescriptorMissing, ManifestUnavailable
from .layout import InstallLayout
from .manifest import ManifestCatalog
from .natives import extract_all, extract_all_async
from .resolver import DependencyResolver
from .target import TargetPlatform

log = logging.getLogger(__name__)

LAUNCH_STRING_FILENAME = 'launch_string.txt'


class LaunchState(enum.Enum):
    IDLE = 'idle'
    RESOLVING = 'resolving'
    COMPOSING = 'composing'
    READY = 'ready'
    FAILED = 'failed'


class Launcher:
    """
    Entry point for front-ends: list versions, install one, and compose
    its launch command.

    The remote manifest is only needed to browse versions and to fetch
    descriptors that are not on disk yet; installed versions resolve and
    launch without it.
    """

    def __init__(self, config: LauncherConfig, catalog: Optional[ManifestCatalog] = None,
                 fetch: Optional[Fetch] = None, java_search_roots=None):
        self.config = config
        self.layout = InstallLayout(config.root)
        self.target = TargetPlatform.resolve(config.platform)
        self.resolver = DependencyResolver(self.layout, self.target, config.libraries_url, config.resources_url)
        self.composer = LaunchComposer(self.resolver, config.launcher_name, config.launcher_version,
                                       java_search_roots)
        self.materializer = AssetMaterializer(self.layout)
        self.state = LaunchState.IDLE
        self._catalog = catalog
        self._fetch = fetch

    @property
    def catalog(self) -> ManifestCatalog:
        if self._catalog is None:
            self._catalog = ManifestCatalog.fetch(self.config.manifest_url, self.config.timeout)
        return self._catalog

    def list_remote_versions(self, releases_only: bool = False) -> List[Tuple[str, bool]]:
        return self.catalog.versions(releases_only)

    def installed_versions(self) -> List[str]:
        return self.layout.installed_versions()

    def orchestrator(self, preferences: Preferences) -> DownloadOrchestrator:
        return DownloadOrchestrator(
            fetch=self._fetch,
            parallel=preferences.parallel_download,
            concurrency=preferences.download_threads,
            timeout=self.config.timeout,
            max_attempts=self.config.max_attempts,
            retry_delay=self.config.retry_delay,
            tolerance=self.config.failure_tolerance,
        )

    async def resolve_and_download(self, version_id: str, preferences: Optional[Preferences] = None,
                                   force: bool = False, progress: Optional[ProgressCallback] = None,
                                   cancel: Optional[asyncio.Event] = None) -> RunOutcome:
        """Installs a version: descriptors, client, libraries, natives, asset index and objects."""
        preferences = preferences or Preferences()
        descriptor = self._ensure_descriptor(version_id, force)
        if descriptor.inherits_from:
            self._ensure_descriptor(descriptor.inherits_from, force)

        artifacts, descriptor = self.resolver.resolve(version_id)
        orchestrator = self.orchestrator(preferences)

        tasks = artifacts.tasks
        index_task = artifacts.asset_index_task
        if index_task and (force or not artifacts.assets_expanded):
            # Objects are only known once the index itself is on disk.
            index_outcome = await orchestrator.run([index_task], force=force, cancel=cancel)
            if force and index_outcome.fetched:
                # Objects listed from the replaced index may be stale.
                artifacts, descriptor = self.resolver.resolve(version_id)
                tasks = [task for task in artifacts.tasks if task != index_task]
            else:
                self.resolver.expand_assets(artifacts)

        outcome = await orchestrator.run(tasks, force=force, cancel=cancel, progress=progress)
        if not outcome.cancelled:
            await extract_all_async(artifacts.natives, self.target.native_extensions)
        if outcome.success:
            log.info(f"Version {version_id} installed")
        else:
            log.error(f"Installing {version_id} failed: {outcome.failed} files failed"
                      f"{' (cancelled)' if outcome.cancelled else ''}")
        return outcome

    def compose_launch(self, version_id: str, preferences: Preferences) -> LaunchInvocation:
        """Prepares an installed version on disk and returns its invocation. Does not spawn it."""
        self.state = LaunchState.RESOLVING
        try:
            preferences = preferences.normalized()
            artifacts, descriptor = self.resolver.resolve(version_id)
            self._reuse_parent_binary(descriptor)
            extract_all(artifacts.natives, self.target.native_extensions)
            assets_id = descriptor.effective_assets
            if self.materializer.needs_materializing(assets_id):
                self.materializer.materialize(assets_id)

            self.state = LaunchState.COMPOSING
            invocation = self.composer.compose_resolved(artifacts, descriptor, preferences)
            if preferences.save_launch_string:
                self.save_launch_string(invocation)
        except Exception:
            self.state = LaunchState.FAILED
            raise
        self.state = LaunchState.READY
        return invocation

    def save_launch_string(self, invocation: LaunchInvocation):
        path = invocation.working_directory / LAUNCH_STRING_FILENAME
        with open(path, 'w', encoding='utf-8') as f:
            f.write(invocation.render())
        log.info(f"Launch string saved to {path}")
        return path

    def _ensure_descriptor(self, version_id: str, force: bool = False) -> VersionDescriptor:
        path = self.layout.descriptor_path(version_id)
        if path.is_file() and not force:
            return load_descriptor(self.layout, version_id)
        try:
            self.catalog.fetch_descriptor(version_id, path, self.config.timeout)
        except ManifestUnavailable as e:
            if not path.is_file():
                raise DescriptorMissing(version_id, path) from e
            log.warning(f"Could not refresh descriptor of {version_id}, using the local one: {e}")
        return load_descriptor(self.layout, version_id)

    def _reuse_parent_binary(self, descriptor: VersionDescriptor):
        parent = descriptor.parent
        if parent is None:
            return
        client_jar = self.layout.client_jar(descriptor.id)
        parent_jar = self.layout.client_jar(parent.id)
        if client_jar.is_file() and client_jar.stat().st_size > 0:
            return
        if parent_jar.is_file():
            log.info(f"Copying client binary of {parent.id} to {client_jar}")
            client_jar.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(parent_jar, client_jar)

__version__ = '1.0.0'

from .composer import LaunchComposer, LaunchContext, LaunchInvocation, offline_uuid
from .config import LauncherConfig, Preferences, load_config
from .descriptor import LibraryEntry, VersionDescriptor
from .download import DownloadOrchestrator, DownloadOutcome, RunOutcome
from .errors import (ArtifactFetchFailed, ClientBinaryMissing, DescriptorMissing, InheritanceTooDeep,
                     InvalidDescriptor, InvalidPreferences, JavaRuntimeNotFound, LauncherError,
                     ManifestUnavailable, ParentDescriptorMissing)
from .launcher import Launcher, LaunchState
from .manifest import ManifestCatalog
from .resolver import ArtifactSet, ArtifactTask, DependencyResolver

"""Errors raised by the resolver, composer and version catalog.

Per-file download failures are not raised: they are collected as
`ArtifactFetchFailed` instances on the run outcome.
"""


class LauncherError(Exception):
    """Base class for every error surfaced to the caller."""


class DescriptorMissing(LauncherError, FileNotFoundError):
    def __init__(self, version_id: str, path=None):
        self.version_id = version_id
        self.path = path
        super().__init__(f"Version descriptor for '{version_id}' not found at {path}")


class ParentDescriptorMissing(LauncherError, FileNotFoundError):
    def __init__(self, version_id: str, parent_id: str, path=None):
        self.version_id = version_id
        self.parent_id = parent_id
        self.path = path
        super().__init__(f"'{version_id}' inherits from '{parent_id}', but {path} is missing")


class InvalidDescriptor(LauncherError, ValueError):
    def __init__(self, version_id: str, reason: str):
        self.version_id = version_id
        super().__init__(f"Invalid descriptor for '{version_id}': {reason}")


class InheritanceTooDeep(LauncherError):
    def __init__(self, chain):
        self.chain = list(chain)
        super().__init__(f"Inheritance chain too deep: {' -> '.join(self.chain)}")


class ManifestUnavailable(LauncherError, ConnectionError):
    pass


class ArtifactFetchFailed(LauncherError):
    def __init__(self, url: str, path, cause=None):
        self.url = url
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to download {url} to {path}: {cause}")


class ClientBinaryMissing(LauncherError, FileNotFoundError):
    def __init__(self, version_id: str, path=None):
        self.version_id = version_id
        self.path = path
        super().__init__(f"Client binary for '{version_id}' is missing: {path}")


class JavaRuntimeNotFound(LauncherError, FileNotFoundError):
    def __init__(self, path=None):
        self.path = path
        if path:
            super().__init__(f"Java runtime not found at {path}")
        else:
            super().__init__("No Java runtime found; install Java or set a custom runtime path")


class InvalidPreferences(LauncherError, ValueError):
    pass

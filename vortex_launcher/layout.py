import pathlib
from typing import List, Union

StrPath = Union[str, 'pathlib.PurePath']


class InstallLayout:
    """Paths of the local install tree, all relative to one root directory."""

    def __init__(self, root: StrPath):
        self.root = pathlib.Path(root)
        self.versions_dir = self.root / 'versions'
        self.libraries_dir = self.root / 'libraries'
        self.assets_dir = self.root / 'assets'
        self.asset_indexes_dir = self.assets_dir / 'indexes'
        self.asset_objects_dir = self.assets_dir / 'objects'
        self.log_configs_dir = self.assets_dir / 'log_configs'
        self.resources_dir = self.root / 'resources'

    def version_dir(self, version_id: str) -> pathlib.Path:
        return self.versions_dir / version_id

    def descriptor_path(self, version_id: str) -> pathlib.Path:
        return self.version_dir(version_id) / f"{version_id}.json"

    def client_jar(self, version_id: str) -> pathlib.Path:
        return self.version_dir(version_id) / f"{version_id}.jar"

    def natives_dir(self, version_id: str) -> pathlib.Path:
        return self.version_dir(version_id) / 'natives'

    def library_path(self, relative: str) -> pathlib.Path:
        return self.libraries_dir.joinpath(*relative.split('/'))

    def asset_index_path(self, index_id: str) -> pathlib.Path:
        return self.asset_indexes_dir / f"{index_id}.json"

    def asset_object_path(self, object_hash: str) -> pathlib.Path:
        return self.asset_objects_dir / object_hash[:2] / object_hash

    def log_config_path(self, config_id: str) -> pathlib.Path:
        return self.log_configs_dir / config_id

    def resource_path(self, name: str) -> pathlib.Path:
        return self.resources_dir.joinpath(*name.split('/'))

    def installed_versions(self) -> List[str]:
        """Ids of version directories that hold their own descriptor."""
        if not self.versions_dir.is_dir():
            return []
        return sorted(
            entry.name for entry in self.versions_dir.iterdir()
            if entry.is_dir() and self.descriptor_path(entry.name).is_file()
        )

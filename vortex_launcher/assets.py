import json
import logging
import os
import pathlib
import shutil
from dataclasses import dataclass, field
from typing import Dict, Optional

from .descriptor import LEGACY_LAYOUT_ASSETS

log = logging.getLogger(__name__)


@dataclass
class AssetObject:
    hash: str
    size: int


@dataclass
class AssetIndex:
    objects: Dict[str, AssetObject] = field(default_factory=dict)
    map_to_resources: bool = False


def read_asset_index(path: pathlib.Path) -> Optional[AssetIndex]:
    """Parses an asset index document, or returns None when it is not on disk."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        log.warning(f"Asset index {path} is not valid JSON: {e}")
        return None

    index = AssetIndex(
        map_to_resources=bool(raw.get('map_to_resources', False)),
    )
    for name, details in (raw.get('objects') or {}).items():
        asset_hash = details.get('hash') if isinstance(details, dict) else None
        if not asset_hash:
            log.warning(f"Asset '{name}' is missing hash in index, skipping.")
            continue
        index.objects[name] = AssetObject(asset_hash, int(details.get('size') or 0))
    return index


class AssetMaterializer:
    """
    Mirrors content-addressed asset objects into the flat ``resources/``
    tree that clients older than the asset index format expect.

    This is a local copy step only; objects that were never downloaded are
    left out.
    """

    def __init__(self, layout):
        self.layout = layout

    def needs_materializing(self, index_id: str) -> bool:
        if index_id in LEGACY_LAYOUT_ASSETS:
            return True
        index = read_asset_index(self.layout.asset_index_path(index_id))
        return bool(index and index.map_to_resources)

    def materialize(self, index_id: str) -> int:
        """Copies missing or size-mismatched resources. Returns the number of files copied."""
        index = read_asset_index(self.layout.asset_index_path(index_id))
        if index is None:
            log.debug(f"No asset index {index_id} on disk, nothing to materialize")
            return 0

        copied = 0
        missing = 0
        for name, asset in index.objects.items():
            resource_path = self.layout.resource_path(name)
            if _size_matches(resource_path, asset.size):
                continue
            object_path = self.layout.asset_object_path(asset.hash)
            if not object_path.is_file():
                missing += 1
                continue
            resource_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(object_path, resource_path)
            copied += 1

        if missing:
            log.warning(f"{missing} objects of asset index {index_id} are not downloaded")
        log.info(f"Copied {copied} assets of index {index_id} into {self.layout.resources_dir}")
        return copied


def _size_matches(path: pathlib.Path, size: int) -> bool:
    try:
        return os.stat(path).st_size == size
    except OSError:
        return False

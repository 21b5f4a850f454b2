import json
import logging
import pathlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from .config import DEFAULT_MANIFEST_URL
from .errors import ManifestUnavailable

log = logging.getLogger(__name__)


@dataclass
class ManifestEntry:
    id: str
    type: str
    url: str

    @property
    def is_release(self) -> bool:
        return self.type == 'release'


class ManifestCatalog:
    """The remote version index: which versions exist and where their descriptors live."""

    def __init__(self, entries: List[ManifestEntry]):
        self.entries = entries
        self._by_id = {entry.id: entry for entry in entries}

    @classmethod
    def from_json(cls, raw: Dict[str, Any]) -> 'ManifestCatalog':
        entries = []
        for version in raw.get('versions', []):
            try:
                entries.append(ManifestEntry(version['id'], version.get('type', 'release'), version['url']))
            except (KeyError, TypeError):
                log.warning(f"Skipping malformed manifest entry: {version!r}")
        return cls(entries)

    @classmethod
    def fetch(cls, url: str = DEFAULT_MANIFEST_URL, timeout: float = 30.0) -> 'ManifestCatalog':
        log.info(f"Fetching version manifest from {url}")
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
            raw = response.json()
        except requests.RequestException as e:
            raise ManifestUnavailable(f"Failed to fetch version manifest: {e}") from e
        except ValueError as e:
            raise ManifestUnavailable(f"Version manifest is not valid JSON: {e}") from e
        if not isinstance(raw, dict):
            raise ManifestUnavailable("Version manifest has no version list")
        return cls.from_json(raw)

    def versions(self, releases_only: bool = False) -> List[Tuple[str, bool]]:
        """(id, is_release) pairs in manifest order, newest first."""
        return [(entry.id, entry.is_release) for entry in self.entries
                if entry.is_release or not releases_only]

    def descriptor_url(self, version_id: str) -> Optional[str]:
        entry = self._by_id.get(version_id)
        return entry.url if entry else None

    def fetch_descriptor(self, version_id: str, destination: pathlib.Path, timeout: float = 30.0) -> pathlib.Path:
        """Downloads a version's descriptor document to `destination`."""
        url = self.descriptor_url(version_id)
        if not url:
            raise ManifestUnavailable(f"Version '{version_id}' is not listed in the manifest")
        log.info(f"Downloading descriptor of {version_id} from {url}")
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
            document = response.json()
        except requests.RequestException as e:
            raise ManifestUnavailable(f"Failed to download descriptor of '{version_id}': {e}") from e
        except ValueError as e:
            raise ManifestUnavailable(f"Descriptor of '{version_id}' is not valid JSON: {e}") from e
        destination = pathlib.Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        with open(destination, 'w', encoding='utf-8') as f:
            json.dump(document, f, indent=2)
        return destination

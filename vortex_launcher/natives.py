import asyncio
import logging
import os
import pathlib
import shutil
import zipfile
from typing import Iterable, Tuple

log = logging.getLogger(__name__)


def extract_natives(archive: pathlib.Path, destination: pathlib.Path,
                    extensions: Tuple[str, ...] = ('.dll',)) -> int:
    """
    Extracts shared libraries from a native bundle, flattening their paths.

    Files already present with a non-zero size are kept. Returns the number
    of files written; a missing archive extracts nothing.
    """
    archive = pathlib.Path(archive)
    destination = pathlib.Path(destination)
    if not archive.is_file():
        log.warning(f"Native bundle not found, skipping extraction: {archive}")
        return 0

    destination.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        with zipfile.ZipFile(archive, 'r') as zip_ref:
            for member in zip_ref.infolist():
                if member.is_dir() or member.filename.upper().startswith('META-INF/'):
                    continue
                if not member.filename.lower().endswith(extensions):
                    continue
                target = destination / pathlib.PurePosixPath(member.filename).name
                if target.is_file() and os.path.getsize(target) > 0:
                    continue
                with zip_ref.open(member) as source, open(target, 'wb') as out:
                    shutil.copyfileobj(source, out)
                written += 1
    except zipfile.BadZipFile:
        log.error(f"Failed to read zip file (BadZipFile): {archive}")
        raise
    log.debug(f"Extracted {written} native files from {archive.name}")
    return written


def extract_all(bundles: Iterable, extensions: Tuple[str, ...]) -> int:
    """Extracts every bundle, logging and skipping archives that cannot be read."""
    total = 0
    for bundle in bundles:
        try:
            total += extract_natives(bundle.archive, bundle.destination, extensions)
        except (zipfile.BadZipFile, OSError) as e:
            log.error(f"Failed to extract natives from {bundle.archive.name}: {e}")
    return total


async def extract_all_async(bundles: Iterable, extensions: Tuple[str, ...]) -> int:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, extract_all, list(bundles), extensions)

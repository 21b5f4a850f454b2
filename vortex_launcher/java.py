import logging
import os
import pathlib
from typing import Iterable, List, Optional

from .errors import JavaRuntimeNotFound
from .target import WINDOWS, TargetPlatform

log = logging.getLogger(__name__)

JAVA_VENDOR_DIRS = ('Java', 'Eclipse Adoptium')


def default_search_roots() -> List[pathlib.Path]:
    """Vendor directories under the Program Files locations of the host."""
    roots = []
    for variable in ('PROGRAMFILES', 'ProgramFiles(x86)'):
        base = os.environ.get(variable)
        if base:
            roots.extend(pathlib.Path(base) / vendor for vendor in JAVA_VENDOR_DIRS)
    return roots


def find_java_executable(install_dir: pathlib.Path, target: TargetPlatform = WINDOWS) -> Optional[pathlib.Path]:
    """
    Returns the runtime binary of a Java install directory, or None.

    Checks ``bin/<binary>`` and the macOS bundle layout
    ``Contents/Home/bin/<binary>``.
    """
    install_dir = pathlib.Path(install_dir)
    for candidate in (install_dir / 'bin' / target.java_binary,
                      install_dir / 'Contents' / 'Home' / 'bin' / target.java_binary):
        if not candidate.is_file():
            continue
        if target.os_name != 'windows' and not os.access(candidate, os.X_OK):
            log.warning(f"File found but not executable: {candidate}")
            continue
        return candidate.resolve()
    return None


def find_java_installations(search_roots: Optional[Iterable[pathlib.Path]] = None,
                            target: TargetPlatform = WINDOWS) -> List[pathlib.Path]:
    """Lists runtime binaries found in ``JAVA_HOME`` and one level below each search root."""
    found: List[pathlib.Path] = []

    java_home = os.environ.get('JAVA_HOME')
    if java_home:
        executable = find_java_executable(pathlib.Path(java_home), target)
        if executable:
            found.append(executable)

    roots = default_search_roots() if search_roots is None else search_roots
    for root in roots:
        root = pathlib.Path(root)
        if not root.is_dir():
            continue
        try:
            entries = sorted(entry for entry in root.iterdir() if entry.is_dir())
        except OSError as e:
            log.warning(f"Could not scan directory {root}: {e}")
            continue
        for entry in entries:
            executable = find_java_executable(entry, target)
            if executable and executable not in found:
                log.debug(f"Found Java runtime: {executable}")
                found.append(executable)
    return found


def resolve_java(custom_path: Optional[str] = None, target: TargetPlatform = WINDOWS,
                 search_roots: Optional[Iterable[pathlib.Path]] = None) -> pathlib.Path:
    """Uses the custom runtime when one is given, otherwise the first discovered one."""
    if custom_path:
        path = pathlib.Path(custom_path)
        if not path.is_file():
            raise JavaRuntimeNotFound(path)
        return path

    installations = find_java_installations(search_roots, target)
    if not installations:
        raise JavaRuntimeNotFound()
    log.info(f"Using Java executable: {installations[0]}")
    return installations[0]

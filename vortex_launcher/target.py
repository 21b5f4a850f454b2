import logging
import platform
from dataclasses import dataclass, field
from typing import Tuple

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TargetPlatform:
    """The platform libraries and arguments are filtered against.

    The classpath separator is carried here rather than taken from
    ``os.pathsep`` so a command can be composed for a platform other than
    the host one.
    """
    os_name: str
    arch: str = 'x64'
    classpath_separator: str = ';'
    java_binary: str = 'javaw.exe'
    native_extensions: Tuple[str, ...] = field(default=('.dll',))

    @property
    def natives_classifier(self) -> str:
        return f"natives-{self.os_name}"

    @property
    def arch_bits(self) -> str:
        """Value substituted for ``${arch}`` in legacy natives classifiers."""
        if self.arch == 'x64':
            return '64'
        if self.arch == 'x86':
            return '32'
        return self.arch

    @classmethod
    def named(cls, os_name: str, arch: str = 'x64') -> 'TargetPlatform':
        if os_name == 'windows':
            return cls('windows', arch, ';', 'javaw.exe', ('.dll',))
        if os_name == 'osx':
            return cls('osx', arch, ':', 'java', ('.dylib', '.jnilib'))
        if os_name == 'linux':
            return cls('linux', arch, ':', 'java', ('.so',))
        raise ValueError(f"Unsupported platform: {os_name}")

    @classmethod
    def current(cls) -> 'TargetPlatform':
        """The platform this process runs on."""
        return cls.named(host_os_name(), host_arch())

    @classmethod
    def resolve(cls, name: str) -> 'TargetPlatform':
        """Maps a configured platform name to a target; ``host`` means the running machine."""
        if name == HOST:
            target = cls.current()
            log.info(f"Host platform detected as {target.os_name}/{target.arch}")
            return target
        return cls.named(name)


HOST = 'host'
WINDOWS = TargetPlatform.named('windows')

_SYSTEMS = {'Windows': 'windows', 'Darwin': 'osx', 'Linux': 'linux'}
_MACHINES = {'amd64': 'x64', 'x86_64': 'x64', 'i386': 'x86', 'i686': 'x86',
             'x86': 'x86', 'arm64': 'arm64', 'aarch64': 'arm64'}


def host_os_name() -> str:
    system = platform.system()
    if system not in _SYSTEMS:
        raise ValueError(f"Unsupported platform: {system}")
    return _SYSTEMS[system]


def host_arch() -> str:
    machine = platform.machine().lower()
    if machine in _MACHINES:
        return _MACHINES[machine]
    if machine.startswith('arm'):
        return 'arm32'
    log.warning(f"Unknown architecture {platform.machine()!r}, assuming x64")
    return 'x64'

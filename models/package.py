# FILE: models/package.py

from dataclasses import dataclass
from enum import IntEnum


class InstallStatus(IntEnum):
    """Lifecycle of a single install invocation."""
    NOT_STARTED = 0
    INSTALLING = 1
    FAILED = 2
    SUCCEEDED = 3


@dataclass
class DebPackage:
    """Control fields read from a .deb archive."""
    name: str = ""
    version: str = ""
    maintainer: str = ""
    description: str = ""
    homepage: str = ""
    installed_size: str = ""
    architecture: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.name


@dataclass(frozen=True)
class InstalledState:
    """What the apt cache knows about a package name."""
    installed: bool = False
    version: str | None = None


@dataclass(frozen=True)
class CheckResult:
    """Outcome of the pre-install dry run."""
    installable: bool
    message: str = ""


@dataclass(frozen=True)
class InstallOutcome:
    """Outcome of the real installer process."""
    status: InstallStatus
    returncode: int


@dataclass(frozen=True)
class SessionSnapshot:
    """A read-only copy of everything the UI may display."""
    file_name: str
    valid: bool
    can_install: bool
    package_name: str
    version: str
    maintainer: str
    description: str
    homepage: str
    installed_size: str
    architecture: str
    installed_version: str
    is_installed: bool
    status: InstallStatus
    status_message: str
    status_details: str
    pre_install_message: str

    @property
    def display_version(self) -> str:
        """Returns the version with the currently installed one appended, if different."""
        if self.installed_version and self.installed_version != self.version:
            return f"{self.version} (installed: {self.installed_version})"
        return self.version

# FILE: services/dpkg_service.py

import logging
import os
import re
import subprocess
from enum import Enum

logger = logging.getLogger(__name__)

# The first bytes of every .deb: an ar archive whose first member is debian-binary.
AR_MAGIC = b"!<arch>\n"
DEB_FIRST_MEMBER = b"debian-binary"

SIZE_UNITS = ["B", "KB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB"]


class DryRunProblem(Enum):
    DEPENDS = "depends"
    CONFLICTS = "conflicts"
    UNKNOWN = "unknown"


def looks_like_deb(path) -> bool:
    """Returns True if the file at path has the magic of a Debian binary package."""
    try:
        with open(path, 'rb') as f:
            header = f.read(len(AR_MAGIC) + len(DEB_FIRST_MEMBER))
    except OSError:
        return False
    return header == AR_MAGIC + DEB_FIRST_MEMBER


def format_byte_size(size: float, precision: int) -> str:
    """
    Formats a byte count with the largest unit that keeps the value below 1024.
    Whole bytes are always shown without decimals.
    """
    unit = 0
    while abs(size) >= 1024.0 and unit < len(SIZE_UNITS) - 1:
        size /= 1024.0
        unit += 1

    if unit == 0:
        precision = 0

    return f"{size:.{precision}f} {SIZE_UNITS[unit]}"


def classify_dry_run_output(output: str) -> DryRunProblem:
    """Guesses why a dry run failed from the text dpkg printed."""
    text = output.lower()
    if "depends" in text or "dependency" in text:
        return DryRunProblem.DEPENDS
    if "conflict" in text:
        return DryRunProblem.CONFLICTS
    return DryRunProblem.UNKNOWN


class DpkgService:
    """A service class to handle all subprocess calls to dpkg."""

    def __init__(self, dpkg_binary: str = "dpkg", timeout: float = 5.0, elevation_command: str = ""):
        self.dpkg_binary = dpkg_binary
        self.timeout = timeout
        self.elevation_command = elevation_command

    def run_command(self, arguments) -> tuple[bool, str, str]:
        """
        Runs dpkg with a bounded wait.
        Returns a tuple: (exited_with_zero, stdout, stderr).
        """
        cmd = [self.dpkg_binary, *arguments]
        try:
            process = subprocess.run(
                cmd, capture_output=True, text=True, check=False,
                errors='replace', timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning("Timed out after %ss: %s", self.timeout, " ".join(cmd))
            return False, "", ""
        except (OSError, subprocess.SubprocessError) as e:
            logger.error("Could not run %s: %s", cmd[0], e)
            return False, "", ""

        return process.returncode == 0, process.stdout, process.stderr

    def inspect(self, path: str) -> bool:
        """Returns True if dpkg can read the archive's control information."""
        ok, _, stderr = self.run_command(['-I', path])
        if not ok and stderr:
            logger.info("dpkg -I rejected %s: %s", path, stderr.strip())
        return ok

    def extract_control_field(self, path: str, field: str) -> str:
        """
        Reads one control field from the archive.
        Returns an empty string if dpkg fails or the field is absent.
        """
        ok, output, _ = self.run_command(['-I', path, 'control'])
        if not ok:
            return ""

        pattern = re.compile(rf"^{re.escape(field)}:[ \t]*(.*)$", re.MULTILINE | re.IGNORECASE)
        match = pattern.search(output)
        if not match:
            return ""
        return match.group(1).strip()

    def dry_run_install(self, path: str) -> tuple[bool, str]:
        """
        Asks dpkg to evaluate the install without applying it.
        Returns a tuple: (success, combined output).
        """
        ok, stdout, stderr = self.run_command(['--dry-run', '-i', path])
        return ok, (stdout + stderr).strip()

    def host_architectures(self) -> list[str]:
        """
        Returns the native architecture followed by any foreign ones.
        An empty list means the host could not be queried.
        """
        ok, native, _ = self.run_command(['--print-architecture'])
        if not ok or not native.strip():
            return []

        architectures = [native.strip()]
        ok, foreign, _ = self.run_command(['--print-foreign-architectures'])
        if ok:
            architectures.extend(line.strip() for line in foreign.splitlines() if line.strip())
        return architectures

    def install_command(self, path: str) -> list[str]:
        cmd = [self.dpkg_binary, '-i', path]
        if self.elevation_command and os.geteuid() != 0:
            cmd = [self.elevation_command, *cmd]
        return cmd

    def spawn_install(self, path: str) -> subprocess.Popen:
        """
        Starts the real installer. Output is left on pipes for the caller to read.
        Raises OSError if the process cannot be started.
        """
        cmd = self.install_command(path)
        logger.info("Starting installer: %s", " ".join(cmd))
        return subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            bufsize=0  # Raw byte pipes; the caller decodes
        )

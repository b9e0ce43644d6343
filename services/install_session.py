# FILE: services/install_session.py

import codecs
import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import fields
from urllib.parse import unquote, urlparse

from models.package import (
    CheckResult,
    DebPackage,
    InstallOutcome,
    InstallStatus,
    SessionSnapshot,
)
from services.apt_cache_service import AptCacheSession
from services.dpkg_service import (
    DpkgService,
    DryRunProblem,
    classify_dry_run_output,
    format_byte_size,
    looks_like_deb,
)

logger = logging.getLogger(__name__)

MSG_NOT_A_DEB = "Error: Not a valid Debian package"
MSG_INVALID = "Error: Invalid or corrupted package"
MSG_UNMET_DEPENDS = "Error: Unmet dependencies"
MSG_CONFLICTS = "Error: Package conflicts"
MSG_CANNOT_SATISFY = "Error: Cannot satisfy dependencies"
MSG_UNSUPPORTED_ARCH = "Error: Unsupported architecture {arch}"
MSG_CACHE_FAILED = "Failed to open APT cache"
MSG_STARTING = "Starting installation"
MSG_SUCCEEDED = "Installation successful"
MSG_FAILED = "Installation failed"

# Event sent to subscribers when the UI should show install progress.
REQUEST_INSTALL_PAGE = "request_install_page"

READ_CHUNK_SIZE = 4096

_DEFAULTS = {
    "file_name": "",
    "valid": False,
    "can_install": False,
    "package_name": "",
    "version": "",
    "maintainer": "",
    "description": "",
    "homepage": "",
    "installed_size": "",
    "architecture": "",
    "installed_version": "",
    "is_installed": False,
    "status": InstallStatus.NOT_STARTED,
    "status_message": "",
    "status_details": "",
    "pre_install_message": "",
}


def normalize_file_name(file_name: str) -> str:
    """Turns a file:// URI or relative path into an absolute filesystem path."""
    if file_name.startswith("file://"):
        file_name = unquote(urlparse(file_name).path)
    return os.path.abspath(file_name)


class InstallSession:
    """
    One .deb file and everything known about it.

    Worker threads never touch the state directly: they hand every update to
    `dispatch(func, *args)`, which the GTK adapter routes through the main loop.
    Subscribers are called with the name of each property that changed.
    """

    def __init__(self, dpkg_service: DpkgService, cache_session: AptCacheSession, dispatch=None):
        self.dpkg = dpkg_service
        self.cache = cache_session
        self._dispatch_lock = threading.RLock()
        self._dispatch = dispatch or self._call_serialized
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="debinstaller")
        self._subscribers = []
        self._values = dict(_DEFAULTS)
        # Bumped on every file selection so stale check results can be dropped.
        self._generation = 0

        if not cache_session.is_open:
            self._values["status_details"] = MSG_CACHE_FAILED

    def _call_serialized(self, func, *args):
        # Without a main loop, updates run on the worker thread one at a time.
        with self._dispatch_lock:
            func(*args)

    # --- Observation ---
    def subscribe(self, callback):
        """Registers callback(name) for property changes. Returns a function that unsubscribes."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(**{f.name: self._values[f.name] for f in fields(SessionSnapshot)})

    def _notify(self, name: str):
        for callback in list(self._subscribers):
            callback(name)

    def _set(self, name: str, value):
        if self._values[name] == value:
            return
        self._values[name] = value
        self._notify(name)

    @property
    def file_name(self) -> str:
        return self._values["file_name"]

    @property
    def valid(self) -> bool:
        return self._values["valid"]

    @property
    def can_install(self) -> bool:
        return self._values["can_install"]

    @property
    def status(self) -> InstallStatus:
        return self._values["status"]

    # --- File selection ---
    def select_file(self, file_name: str) -> Future | None:
        """
        Inspects a new archive and starts the installability check in the background.
        Returns the check's Future, or None if the file was rejected or ignored.
        """
        if not file_name:
            return None

        path = normalize_file_name(file_name)
        if path == self.file_name and self.valid:
            return None
        if self.status == InstallStatus.INSTALLING:
            logger.warning("Ignoring %s: an installation is still running", path)
            return None

        self._generation += 1
        self._reset()
        self._set("file_name", path)

        if not looks_like_deb(path):
            logger.info("Rejected %s: not a Debian package", path)
            self._set("pre_install_message", MSG_NOT_A_DEB)
            return None

        package = self._parse(path)
        if package.is_empty:
            logger.info("Rejected %s: dpkg could not read its control data", path)
            self._set("pre_install_message", MSG_INVALID)
            return None

        self._publish_package(package)
        self._set("valid", True)
        self._update_installed_state(package.name)

        return self._executor.submit(self._check_worker, path, package.architecture, self._generation)

    def _reset(self):
        for name, default in _DEFAULTS.items():
            if name == "status_details" and not self.cache.is_open:
                default = MSG_CACHE_FAILED
            self._set(name, default)

    def _parse(self, path: str) -> DebPackage:
        if not self.dpkg.inspect(path):
            return DebPackage()

        package = DebPackage(
            name=self.dpkg.extract_control_field(path, "Package"),
            version=self.dpkg.extract_control_field(path, "Version"),
            maintainer=self.dpkg.extract_control_field(path, "Maintainer"),
            homepage=self.dpkg.extract_control_field(path, "Homepage"),
            architecture=self.dpkg.extract_control_field(path, "Architecture"),
        )
        # Only the synopsis line is shown
        package.description = self.dpkg.extract_control_field(path, "Description").split("\n", 1)[0]

        size_kib = self.dpkg.extract_control_field(path, "Installed-Size")
        if size_kib:
            try:
                package.installed_size = format_byte_size(float(size_kib) * 1024.0, 1)
            except ValueError:
                logger.warning("Unparsable Installed-Size '%s' in %s", size_kib, path)
        return package

    def _publish_package(self, package: DebPackage):
        self._set("package_name", package.name)
        self._set("version", package.version)
        self._set("maintainer", package.maintainer)
        self._set("description", package.description)
        self._set("homepage", package.homepage)
        self._set("installed_size", package.installed_size)
        self._set("architecture", package.architecture)

    def _update_installed_state(self, package_name: str):
        state = self.cache.lookup(package_name)
        self._set("is_installed", state.installed)
        self._set("installed_version", state.version or "")

    # --- Pre-install checks (background) ---
    def _check_worker(self, path: str, architecture: str, generation: int) -> CheckResult:
        result = self._run_checks(path, architecture)
        self._dispatch(self._apply_check_result, generation, result)
        return result

    def _run_checks(self, path: str, architecture: str) -> CheckResult:
        ok, output = self.dpkg.dry_run_install(path)
        if not ok:
            problem = classify_dry_run_output(output)
            if problem is DryRunProblem.DEPENDS:
                return CheckResult(False, MSG_UNMET_DEPENDS)
            if problem is DryRunProblem.CONFLICTS:
                return CheckResult(False, MSG_CONFLICTS)
            # Usually a missing-privileges error; the real install will report anything else.
            logger.warning("Dry run of %s failed for an unrecognised reason: %s", path, output)

        if self._breaks_system(architecture):
            return CheckResult(False, MSG_UNSUPPORTED_ARCH.format(arch=architecture))
        return CheckResult(True)

    def _breaks_system(self, architecture: str) -> bool:
        if not architecture or architecture == "all":
            return False
        host = self.dpkg.host_architectures()
        if not host:
            return False
        return architecture not in host

    def _apply_check_result(self, generation: int, result: CheckResult):
        if generation != self._generation:
            logger.debug("Dropping check result for a file that is no longer selected")
            return
        message = result.message
        if not result.installable and not message:
            message = MSG_CANNOT_SATISFY
        self._set("can_install", result.installable)
        self._set("pre_install_message", message)

    # --- Installation ---
    def install(self) -> Future | None:
        """Starts the real installer. Does nothing unless the package is valid and installable."""
        if not self.valid or not self.can_install:
            return None
        if self.status == InstallStatus.INSTALLING:
            return None

        self._set("status", InstallStatus.INSTALLING)
        self._set("status_message", MSG_STARTING)
        self._set("status_details", "")
        self._notify(REQUEST_INSTALL_PAGE)

        return self._executor.submit(self._install_worker, self.file_name)

    def _install_worker(self, path: str) -> InstallOutcome:
        try:
            process = self.dpkg.spawn_install(path)
        except OSError as e:
            logger.error("Could not start installer for %s: %s", path, e)
            self._dispatch(self._finish_install, -1, str(e))
            return InstallOutcome(InstallStatus.FAILED, -1)

        stdout_chunks, stderr_chunks = [], []
        readers = [
            threading.Thread(target=self._pump_output, args=(process.stdout, stdout_chunks), daemon=True),
            threading.Thread(target=self._pump_output, args=(process.stderr, stderr_chunks), daemon=True),
        ]
        for reader in readers:
            reader.start()

        returncode = process.wait()
        for reader in readers:
            reader.join()

        if returncode < 0:
            logger.error("Installer was killed by signal %d", -returncode)
        elif returncode != 0:
            logger.error("Installer exited with code %d", returncode)
        else:
            logger.info("Installed %s", path)

        errors = "".join(stderr_chunks) or "".join(stdout_chunks)
        self._dispatch(self._finish_install, returncode, errors)
        status = InstallStatus.SUCCEEDED if returncode == 0 else InstallStatus.FAILED
        return InstallOutcome(status, returncode)

    def _pump_output(self, stream, sink: list):
        # Unbuffered pipe: read returns whatever is available, so prompts without a newline show up too.
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        try:
            for data in iter(lambda: stream.read(READ_CHUNK_SIZE), b''):
                self._emit_output(decoder.decode(data), sink)
            self._emit_output(decoder.decode(b'', final=True), sink)
        finally:
            stream.close()

    def _emit_output(self, text: str, sink: list):
        if not text:
            return
        sink.append(text)
        self._dispatch(self._append_details, text)

    def _append_details(self, text: str):
        self._set("status_details", self._values["status_details"] + text)

    def _finish_install(self, returncode: int, errors: str):
        if returncode == 0:
            self._set("status", InstallStatus.SUCCEEDED)
            self._set("status_message", MSG_SUCCEEDED)
            self._set("is_installed", True)
            self._set("installed_version", self._values["version"])
            return

        self._set("status", InstallStatus.FAILED)
        self._set("status_message", MSG_FAILED)
        if errors:
            self._append_details("\nError:\n" + errors)

    def close(self):
        """Stops accepting work and releases the apt cache. Running work is not cancelled."""
        self._executor.shutdown(wait=False)
        self.cache.close()

import io
import threading

import pytest

from models.package import InstalledState


class FakeProcess:
    """Stands in for subprocess.Popen with canned output."""

    def __init__(self, stdout="", stderr="", returncode=0):
        self.stdout = io.BytesIO(stdout.encode("utf-8"))
        self.stderr = io.BytesIO(stderr.encode("utf-8"))
        self.returncode = returncode

    def wait(self):
        return self.returncode


class BlockingProcess(FakeProcess):
    """An installer that keeps running until release() is called."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self._finished = threading.Event()

    def release(self):
        self._finished.set()

    def wait(self):
        self._finished.wait(timeout=10)
        return self.returncode


class FakeDpkg:
    """Records calls and answers like DpkgService would."""

    def __init__(self, fields=None, inspect_ok=True, dry_run=(True, ""),
                 architectures=("amd64",), process=None, spawn_error=None):
        self.fields = fields or {}
        self.inspect_ok = inspect_ok
        self.dry_run = dry_run
        self.architectures = list(architectures)
        self.process = process or FakeProcess()
        self.spawn_error = spawn_error
        self.calls = []

    def inspect(self, path):
        self.calls.append(('inspect', path))
        return self.inspect_ok

    def extract_control_field(self, path, field):
        self.calls.append(('field', field))
        return self.fields.get(field, "")

    def dry_run_install(self, path):
        self.calls.append(('dry-run', path))
        return self.dry_run

    def host_architectures(self):
        return list(self.architectures)

    def spawn_install(self, path):
        self.calls.append(('install', path))
        if self.spawn_error:
            raise self.spawn_error
        return self.process


class FakeCache:
    def __init__(self, installed=None, is_open=True):
        self.installed = installed or {}
        self.is_open = is_open
        self.closed = False

    def lookup(self, name):
        if name in self.installed:
            return InstalledState(True, self.installed[name])
        return InstalledState()

    def close(self):
        self.closed = True


FOO_FIELDS = {
    'Package': 'foo',
    'Version': '1.2',
    'Maintainer': 'Jane Doe <jane@example.org>',
    'Description': 'A tool that does foo',
    'Homepage': 'https://example.org/foo',
    'Installed-Size': '2048',
    'Architecture': 'amd64',
}


def write_deb(path):
    # ar magic, then the header of the debian-binary member
    path.write_bytes(b"!<arch>\ndebian-binary   1700000000  0     0     100644  4         `\n2.0\n")
    return path


@pytest.fixture
def deb_file(tmp_path):
    return write_deb(tmp_path / "foo_1.2_amd64.deb")


@pytest.fixture
def other_deb_file(tmp_path):
    return write_deb(tmp_path / "bar_0.1_all.deb")


@pytest.fixture
def text_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("just some text\n")
    return path

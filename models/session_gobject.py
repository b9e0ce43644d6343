# FILE: models/session_gobject.py

import gi
gi.require_version('Gtk', '4.0')
from gi.repository import GLib, GObject

from models.package import InstallStatus
from services.install_session import REQUEST_INSTALL_PAGE, InstallSession


def _idle_dispatch(func, *args):
    """Runs func(*args) once on the GLib main loop."""
    def callback():
        func(*args)
        return GLib.SOURCE_REMOVE
    GLib.idle_add(callback)


class InstallSessionGObject(GObject.Object):
    __gtype_name__ = "InstallSessionGObject"
    """
    A GObject wrapper for InstallSession.
    Every session property becomes a GObject property with notify:: support,
    so GTK widgets can follow the install without polling.
    """

    __gsignals__ = {
        'request-install-page': (GObject.SignalFlags.RUN_FIRST, None, ()),
    }

    def __init__(self, dpkg_service, cache_session, session_factory=InstallSession):
        super().__init__()
        self._session = session_factory(dpkg_service, cache_session, dispatch=_idle_dispatch)
        self._unsubscribe = self._session.subscribe(self._on_session_changed)

    def _on_session_changed(self, name: str):
        if name == REQUEST_INSTALL_PAGE:
            self.emit('request-install-page')
        else:
            self.notify(name.replace('_', '-'))

    # --- Properties (read through to the session) ---
    @GObject.Property(type=str, default="", nick='File Name')
    def file_name(self):
        return self._session.snapshot().file_name

    @file_name.setter
    def file_name(self, value):
        self._session.select_file(value)

    @GObject.Property(type=bool, default=False, nick='Valid', flags=GObject.ParamFlags.READABLE)
    def valid(self):
        return self._session.valid

    @GObject.Property(type=bool, default=False, nick='Can Install', flags=GObject.ParamFlags.READABLE)
    def can_install(self):
        return self._session.can_install

    @GObject.Property(type=str, default="", nick='Package Name', flags=GObject.ParamFlags.READABLE)
    def package_name(self):
        return self._session.snapshot().package_name

    @GObject.Property(type=str, default="", nick='Version', flags=GObject.ParamFlags.READABLE)
    def version(self):
        return self._session.snapshot().version

    @GObject.Property(type=str, default="", nick='Maintainer', flags=GObject.ParamFlags.READABLE)
    def maintainer(self):
        return self._session.snapshot().maintainer

    @GObject.Property(type=str, default="", nick='Description', flags=GObject.ParamFlags.READABLE)
    def description(self):
        return self._session.snapshot().description

    @GObject.Property(type=str, default="", nick='Homepage', flags=GObject.ParamFlags.READABLE)
    def homepage(self):
        return self._session.snapshot().homepage

    @GObject.Property(type=str, default="", nick='Installed Size', flags=GObject.ParamFlags.READABLE)
    def installed_size(self):
        return self._session.snapshot().installed_size

    @GObject.Property(type=str, default="", nick='Architecture', flags=GObject.ParamFlags.READABLE)
    def architecture(self):
        return self._session.snapshot().architecture

    @GObject.Property(type=str, default="", nick='Installed Version', flags=GObject.ParamFlags.READABLE)
    def installed_version(self):
        return self._session.snapshot().installed_version

    @GObject.Property(type=bool, default=False, nick='Is Installed', flags=GObject.ParamFlags.READABLE)
    def is_installed(self):
        return self._session.snapshot().is_installed

    @GObject.Property(type=int, default=int(InstallStatus.NOT_STARTED), nick='Status', flags=GObject.ParamFlags.READABLE)
    def status(self):
        return int(self._session.status)

    @GObject.Property(type=str, default="", nick='Status Message', flags=GObject.ParamFlags.READABLE)
    def status_message(self):
        return self._session.snapshot().status_message

    @GObject.Property(type=str, default="", nick='Status Details', flags=GObject.ParamFlags.READABLE)
    def status_details(self):
        return self._session.snapshot().status_details

    @GObject.Property(type=str, default="", nick='Pre-install Message', flags=GObject.ParamFlags.READABLE)
    def pre_install_message(self):
        return self._session.snapshot().pre_install_message

    # --- Commands ---
    def install(self):
        """The single UI-facing command: begins the install if allowed."""
        return self._session.install()

    def get_snapshot(self):
        return self._session.snapshot()

    def close(self):
        self._unsubscribe()
        self._session.close()

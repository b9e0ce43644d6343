#!/usr/bin/env python3

# FILE: debinstaller.py

import logging
import sys
from pathlib import Path

import gi
gi.require_version('Gtk', '4.0')
from gi.repository import Gtk, Gio, GLib

from services.apt_cache_service import AptCacheSession
from services.config_service import load_or_create_settings
from services.dpkg_service import DpkgService
from services.log_service import configure_logging
from ui.window import DebInstallerWindow

logger = logging.getLogger(__name__)

LOG_FILE = Path(GLib.get_user_cache_dir()) / 'debinstaller' / 'debinstaller.log'


class DebInstallerApp(Gtk.Application):
    """The main GTK Application class."""
    def __init__(self, settings, *args, **kwargs):
        super().__init__(*args, application_id="com.debinstaller.DebInstaller", flags=Gio.ApplicationFlags.HANDLES_OPEN, **kwargs)
        self.window = None
        self.settings = settings

    def _get_window(self):
        if not self.window:
            dpkg_service = DpkgService(
                dpkg_binary=self.settings.dpkg_binary,
                timeout=self.settings.command_timeout,
                elevation_command=self.settings.elevation_command,
            )
            cache_session = AptCacheSession()
            cache_session.open()
            self.window = DebInstallerWindow(dpkg_service, cache_session, application=self)
        return self.window

    def do_activate(self):
        """Called when the application is started without files."""
        self._get_window().present()

    def do_open(self, files, n_files, hint):
        """Called with the archives given on the command line; only the first is used."""
        window = self._get_window()
        if n_files > 1:
            logger.warning("Only one package can be installed at a time; using %s", files[0].get_path())
        if files and files[0].get_path():
            window.load_file(files[0].get_path())
        window.present()


def _gtk_log_handler(domain, level, message):
    if "GtkText - did not receive a focus-out event." in message:
        return # Suppress this specific warning
    # Otherwise, let GLib handle it normally
    GLib.log_default_handler(domain, level, message)


def main(argv=None):
    settings = load_or_create_settings()
    configure_logging(LOG_FILE, settings.log_level)

    # Set the custom log handler before the application starts
    GLib.log_set_handler("Gtk", GLib.LogLevelFlags.LEVEL_WARNING, _gtk_log_handler)

    app = DebInstallerApp(settings)
    return app.run(argv if argv is not None else sys.argv)


if __name__ == "__main__":
    sys.exit(main())

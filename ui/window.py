import logging
from pathlib import Path

import gi
gi.require_version('Gtk', '4.0')
from gi.repository import Gtk, GLib, Gio

from models.package import InstallStatus
from models.session_gobject import InstallSessionGObject

logger = logging.getLogger(__name__)

UI_FILE = Path(__file__).with_name('debinstaller.ui')


@Gtk.Template(filename=str(UI_FILE))
class DebInstallerWindow(Gtk.ApplicationWindow):
    __gtype_name__ = 'DebInstallerWindow'

    # --- Template Children (UI Widgets) ---
    stack = Gtk.Template.Child()
    open_button = Gtk.Template.Child()
    install_button = Gtk.Template.Child()
    package_name_label = Gtk.Template.Child()
    version_label = Gtk.Template.Child()
    maintainer_label = Gtk.Template.Child()
    homepage_label = Gtk.Template.Child()
    installed_size_label = Gtk.Template.Child()
    description_label = Gtk.Template.Child()
    pre_install_label = Gtk.Template.Child()
    status_label = Gtk.Template.Child()
    spinner = Gtk.Template.Child()
    details_textview = Gtk.Template.Child()
    close_button = Gtk.Template.Child()

    def __init__(self, dpkg_service, cache_session, *args, **kwargs):
        super().__init__(*args, **kwargs)

        # The wrapper owns all state; the window only mirrors it.
        self.installer = InstallSessionGObject(dpkg_service, cache_session)
        self.details_buffer = self.details_textview.get_buffer()

        for prop in ('file-name', 'valid', 'can-install', 'package-name', 'version',
                     'maintainer', 'homepage', 'installed-size', 'description',
                     'installed-version', 'is-installed', 'pre-install-message'):
            self.installer.connect(f'notify::{prop}', self._on_package_changed)
        self.installer.connect('notify::status', self._on_status_changed)
        self.installer.connect('notify::status-message', self._on_status_changed)
        self.installer.connect('notify::status-details', self._on_details_changed)
        self.installer.connect('request-install-page', self._on_request_install_page)
        self.connect('close-request', self._on_close_request)

        self._on_package_changed()
        self._on_details_changed()

    # --- Public API (from the application) ---
    def load_file(self, path: str):
        logger.info("Loading %s", path)
        self.installer.props.file_name = path
        self.stack.set_visible_child_name('package')

    # --- Session -> UI ---
    def _on_package_changed(self, *args):
        snap = self.installer.get_snapshot()
        self.set_title(snap.package_name or "Package Installer")

        self.package_name_label.set_text(snap.package_name)
        self.version_label.set_text(snap.display_version)
        self.maintainer_label.set_text(snap.maintainer)
        self.installed_size_label.set_text(snap.installed_size)
        self.description_label.set_text(snap.description)
        if snap.homepage:
            escaped = GLib.markup_escape_text(snap.homepage)
            self.homepage_label.set_markup(f"<a href=\"{escaped}\">{escaped}</a>")
        else:
            self.homepage_label.set_text("")

        self.pre_install_label.set_text(snap.pre_install_message)
        self.pre_install_label.set_visible(bool(snap.pre_install_message))

        if snap.valid and not snap.can_install and not snap.pre_install_message:
            self.install_button.set_label("Checking…")
        elif snap.is_installed and snap.installed_version == snap.version:
            self.install_button.set_label("Reinstall")
        else:
            self.install_button.set_label("Install")
        self._update_button_sensitivity()

    def _on_status_changed(self, *args):
        snap = self.installer.get_snapshot()
        self.status_label.set_text(snap.status_message)
        installing = snap.status == InstallStatus.INSTALLING
        self.spinner.set_spinning(installing)
        self.close_button.set_sensitive(not installing)
        self.open_button.set_sensitive(not installing)
        self._update_button_sensitivity()

    def _on_details_changed(self, *args):
        self.details_buffer.set_text(self.installer.get_snapshot().status_details)
        GLib.idle_add(self._scroll_details_to_end)

    def _on_request_install_page(self, installer):
        self.stack.set_visible_child_name('install')

    def _update_button_sensitivity(self):
        snap = self.installer.get_snapshot()
        self.install_button.set_sensitive(
            snap.valid and snap.can_install and snap.status != InstallStatus.INSTALLING)

    def _scroll_details_to_end(self):
        adj = self.details_textview.get_parent().get_vadjustment()
        adj.set_value(adj.get_upper())
        return False

    # --- UI Event Handlers (from User to session) ---
    @Gtk.Template.Callback()
    def on_open_clicked(self, widget):
        deb_filter = Gtk.FileFilter()
        deb_filter.set_name("Debian packages")
        deb_filter.add_mime_type("application/vnd.debian.binary-package")
        deb_filter.add_pattern("*.deb")
        filters = Gio.ListStore(item_type=Gtk.FileFilter)
        filters.append(deb_filter)

        dialog = Gtk.FileDialog(title="Open Package", filters=filters, default_filter=deb_filter)
        dialog.open(self, None, self._on_open_finished)

    def _on_open_finished(self, dialog, result):
        try:
            gfile = dialog.open_finish(result)
        except GLib.Error as e:
            # Cancelling the dialog is reported as an error too
            logger.debug("File dialog closed without a file: %s", e.message)
            return
        if gfile is not None and gfile.get_path():
            self.load_file(gfile.get_path())

    @Gtk.Template.Callback()
    def on_install_clicked(self, widget):
        self.installer.install()

    @Gtk.Template.Callback()
    def on_close_clicked(self, widget):
        self.close()

    def _on_close_request(self, window):
        snap = self.installer.get_snapshot()
        if snap.status == InstallStatus.INSTALLING:
            # dpkg must not be interrupted half way through
            return True
        self.installer.close()
        return False

# FILE: services/apt_cache_service.py

import logging

from models.package import InstalledState

logger = logging.getLogger(__name__)


def _open_system_cache():
    import apt  # python-apt is a distro package; only needed once a cache is opened
    return apt.Cache()


class AptCacheSession:
    """
    A read-only handle on the apt package cache.
    The caller creates it, opens it and closes it; nothing here is global.
    """

    def __init__(self, cache_factory=None):
        self._cache_factory = cache_factory or _open_system_cache
        self._cache = None

    @property
    def is_open(self) -> bool:
        return self._cache is not None

    def open(self) -> bool:
        """Builds the underlying cache. Returns False if apt could not be initialised."""
        if self._cache is not None:
            return True
        try:
            self._cache = self._cache_factory()
        except ImportError as e:
            logger.error("python-apt is not available: %s", e)
            return False
        except (SystemError, OSError) as e:
            # python-apt reports broken configuration or lists as SystemError
            logger.error("Failed to open APT cache: %s", e)
            return False
        return True

    def lookup(self, package_name: str) -> InstalledState:
        """Reports whether a package is installed and at which version."""
        if self._cache is None or not package_name:
            return InstalledState()
        if package_name not in self._cache:
            return InstalledState()

        pkg = self._cache[package_name]
        current = pkg.installed
        if current is None:
            return InstalledState()
        return InstalledState(installed=bool(pkg.is_installed), version=current.version)

    def close(self):
        if self._cache is not None:
            self._cache.close()
            self._cache = None

"""Filesystem layout of a plugin manager installation."""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

MANIFEST_EXTENSION = ".yaml"
DEFAULT_INDEX_NAME = "default"
ENABLE_MULTI_INDEX_SWITCH = "X_KREW_ENABLE_MULTI_INDEX"
ROOT_ENV_VAR = "KREW_ROOT"


def multi_index_enabled() -> bool:
    """Return True when the multi-index feature switch is set in the environment."""
    return ENABLE_MULTI_INDEX_SWITCH in os.environ


@dataclass(frozen=True)
class Paths:
    """The important directories of an installation rooted at ``base``."""

    base: str
    tmp: str = field(default_factory=tempfile.gettempdir)

    def base_path(self) -> str:
        """The installation base directory."""
        return self.base

    def index_base(self) -> str:
        """The directory holding the default index and any custom ones."""
        return os.path.join(self.base, "index")

    def index_path(self, name: str) -> str:
        """The directory where the named index repository is cloned.

        Without the multi-index switch this is the index base itself.
        """
        if multi_index_enabled():
            return os.path.join(self.base, "index", name)
        return self.index_base()

    def index_plugins_path(self, name: str) -> str:
        """The plugins directory of the named index repository."""
        return os.path.join(self.index_path(name), "plugins")

    def install_receipts_path(self) -> str:
        """The directory where install receipts are stored."""
        return os.path.join(self.base, "receipts")

    def bin_path(self) -> str:
        """The directory holding links to plugin executables."""
        return os.path.join(self.base, "bin")

    def install_path(self) -> str:
        """The base directory for plugin installations."""
        return os.path.join(self.base, "store")

    def plugin_install_path(self, plugin: str) -> str:
        """The directory a plugin is installed into."""
        return os.path.join(self.install_path(), plugin)

    def plugin_install_receipt_path(self, plugin: str) -> str:
        """The path of the install receipt for a plugin."""
        return os.path.join(self.install_receipts_path(), plugin + MANIFEST_EXTENSION)

    def plugin_version_install_path(self, plugin: str, version: str) -> str:
        """The directory of one installed version of a plugin."""
        return os.path.join(self.install_path(), plugin, version)


def must_get_krew_paths() -> Paths:
    """Infer the installation paths: ``~/.krew`` unless KREW_ROOT overrides it."""
    base = os.path.join(str(Path.home()), ".krew")
    from_env = os.environ.get(ROOT_ENV_VAR, "")
    if from_env:
        base = from_env
        log.debug("using environment override %s=%s", ROOT_ENV_VAR, from_env)
    return Paths(os.path.abspath(base))


def realpath(path: str) -> str:
    """Resolve one level of symbolic link, returning a cleaned path.

    Raises OSError if the path cannot be inspected and ValueError if it is a
    symbolic link with a relative target.
    """
    info = os.lstat(path)
    if stat.S_ISLNK(info.st_mode):
        path = os.readlink(path)
        if not os.path.isabs(path):
            raise ValueError(f"symbolic link is relative ({path})")
    return os.path.normpath(path)
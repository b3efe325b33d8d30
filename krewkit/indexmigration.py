"""Migration of a single-index layout to the multi-index layout."""

from __future__ import annotations

import logging
import os

from krewkit.environment import Paths

log = logging.getLogger(__name__)


def done(paths: Paths) -> bool:
    """Return True unless the index base directory itself holds a .git entry."""
    try:
        os.stat(os.path.join(paths.index_base(), ".git"))
    except FileNotFoundError:
        return True
    return False


def migrate(paths: Paths) -> None:
    """Move the existing index clone into ``index/default``."""
    if done(paths):
        log.info("Already migrated")
        return

    index_path = paths.index_base()
    tmp_path = os.path.join(paths.base_path(), "tmp_index_migration")
    new_path = os.path.join(paths.index_base(), "default")

    os.rename(index_path, tmp_path)
    os.mkdir(index_path)
    os.rename(tmp_path, new_path)
    log.info("Migration completed successfully.")
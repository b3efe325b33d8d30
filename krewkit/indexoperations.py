"""Managing the configured plugin indexes."""

from __future__ import annotations

import os
import re
import shutil
import stat
from dataclasses import dataclass
from typing import List

from krewkit.environment import Paths
from krewkit.gitutil import GitError, ensure_cloned, get_remote_url

_VALID_NAME = re.compile(r"[A-Za-z0-9_-]+")


@dataclass(frozen=True)
class Index:
    """A configured index: its name and remote URL."""

    name: str
    url: str


def list_indexes(paths: Paths) -> List[Index]:
    """Return the indexes found under the index base directory, by name."""
    indexes = []
    for name in sorted(os.listdir(paths.index_base())):
        try:
            url = get_remote_url(paths.index_path(name))
        except GitError as err:
            raise GitError(f"failed to list the remote URL for index {name}: {err}") from err
        indexes.append(Index(name=name, url=url))
    return indexes


def add_index(paths: Paths, name: str, url: str) -> None:
    """Clone ``url`` as a new index called ``name``."""
    if not is_valid_index_name(name):
        raise ValueError("invalid index name")
    directory = paths.index_path(name)
    try:
        os.stat(directory)
    except FileNotFoundError:
        ensure_cloned(url, directory)
        return
    raise FileExistsError(f"index already exists: {directory}")


def delete_index(paths: Paths, name: str) -> None:
    """Remove the index ``name``; raises FileNotFoundError if it does not exist."""
    if not is_valid_index_name(name):
        raise ValueError("invalid index name")
    directory = paths.index_path(name)
    info = os.stat(directory)
    if stat.S_ISDIR(info.st_mode) and not os.path.islink(directory):
        shutil.rmtree(directory)
    else:
        os.remove(directory)


def is_valid_index_name(name: str) -> bool:
    """Return True if ``name`` only holds letters, digits, '_' and '-'."""
    return _VALID_NAME.fullmatch(name) is not None
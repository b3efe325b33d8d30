"""Helpers that drive the git command line."""

from __future__ import annotations

import logging
import os
import stat
import subprocess

log = logging.getLogger(__name__)


class GitError(Exception):
    """Raised when a git command fails."""


def exec_git(pwd: str, *args: str) -> str:
    """Run git with ``args`` in ``pwd`` and return its trimmed combined output."""
    log.debug("Going to run git %s", " ".join(args))
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=pwd or None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
    except OSError as err:
        raise GitError(f"command execution failure: {err}") from err
    output = result.stdout.decode("utf-8", errors="replace")
    if log.isEnabledFor(logging.DEBUG) and output:
        log.debug("%s", output)
    if result.returncode != 0:
        raise GitError(f"command execution failure, output={output!r}")
    return output.strip()


def is_git_cloned(git_path: str) -> bool:
    """Return True if ``git_path`` holds a .git directory."""
    try:
        info = os.stat(os.path.join(git_path, ".git"))
    except FileNotFoundError:
        return False
    return stat.S_ISDIR(info.st_mode)


def ensure_cloned(uri: str, destination_path: str) -> None:
    """Clone ``uri`` into ``destination_path`` unless it is already a clone."""
    if not is_git_cloned(destination_path):
        exec_git("", "clone", "-v", uri, destination_path)


def _update_and_clean_untracked(destination_path: str) -> None:
    """Fetch origin, reset to upstream and remove untracked files."""
    try:
        exec_git(destination_path, "fetch", "-v")
    except GitError as err:
        raise GitError(f"fetch index at {destination_path!r} failed: {err}") from err
    try:
        exec_git(destination_path, "reset", "--hard", "@{upstream}")
    except GitError as err:
        raise GitError(f"reset index at {destination_path!r} failed: {err}") from err
    try:
        exec_git(destination_path, "clean", "-xfd")
    except GitError as err:
        raise GitError(f"clean index at {destination_path!r} failed: {err}") from err


def ensure_updated(uri: str, destination_path: str) -> None:
    """Make sure ``destination_path`` is a clone of ``uri`` and up to date."""
    ensure_cloned(uri, destination_path)
    _update_and_clean_untracked(destination_path)


def get_remote_url(directory: str) -> str:
    """Return the URL of the ``origin`` remote of the repository in ``directory``."""
    return exec_git(directory, "config", "--get", "remote.origin.url")
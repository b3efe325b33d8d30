"""User-facing warnings, setup hints and the latest-release check."""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional, TextIO

import requests

from krewkit.environment import Paths

log = logging.getLogger(__name__)

KREW_PLUGIN_NAME = "krew"
GITHUB_VERSION_URL = "https://api.github.com/repos/kubernetes-sigs/krew/releases/latest"

_SECURITY_NOTICE = (
    "You installed plugin {plugin} from the krew-index plugin repository.\n"
    "   These plugins are not audited for security by the Krew maintainers.\n"
    "   Run them at your own risk."
)

INSTRUCTION_WINDOWS = (
    "To be able to run kubectl plugins, you need to add the\n"
    '"%USERPROFILE%\\.krew\\bin" directory to your PATH environment variable\n'
    "and restart your shell."
)
_INSTRUCTION_UNIX_TEMPLATE = (
    "To be able to run kubectl plugins, you need to add\n"
    "the following to your {}\n"
    "\n"
    "and restart your shell."
)
_INSTRUCTION_ZSH = '~/.zshrc:\n\n    export PATH="${PATH}:${HOME}/.krew/bin"'
_INSTRUCTION_BASH = '~/.bash_profile or ~/.bashrc:\n\n    export PATH="${PATH}:${HOME}/.krew/bin"'
_INSTRUCTION_FISH = "config.fish:\n\n    set -gx PATH $PATH $HOME/.krew/bin"
_INSTRUCTION_GENERIC = (
    '~/.bash_profile, ~/.bashrc, or ~/.zshrc:\n\n    export PATH="${PATH}:${HOME}/.krew/bin"'
)

_SHELL_INSTRUCTIONS = (
    ("/zsh", _INSTRUCTION_ZSH),
    ("/bash", _INSTRUCTION_BASH),
    ("/fish", _INSTRUCTION_FISH),
)

_BOLD_RED = "\x1b[31;1m"
_RESET = "\x1b[0m"


def print_warning(stream: TextIO, message: str) -> None:
    """Write ``message`` to ``stream`` prefixed with a WARNING marker."""
    prefix = "WARNING: "
    isatty = getattr(stream, "isatty", None)
    if isatty is not None and isatty():
        prefix = f"{_BOLD_RED}{prefix}{_RESET}"
    stream.write(prefix + message)


def print_security_notice(plugin: str, stream: Optional[TextIO] = None) -> None:
    """Warn that an installed plugin is not audited, except for krew itself."""
    if plugin == KREW_PLUGIN_NAME:
        return
    print_warning(
        stream if stream is not None else sys.stderr,
        _SECURITY_NOTICE.format(plugin=json.dumps(plugin)) + "\n",
    )


def is_windows() -> bool:
    """Return True if the target OS is Windows; KREW_OS overrides detection."""
    override = os.environ.get("KREW_OS", "")
    if override:
        return override == "windows"
    return sys.platform == "win32"


def is_bin_dir_in_path(paths: Paths) -> bool:
    """Return True if the bin directory is on PATH, or if this is the first run."""
    try:
        os.stat(paths.base_path())
    except OSError as err:
        log.debug("Assuming this is the first run")
        return isinstance(err, FileNotFoundError)

    bin_path = paths.bin_path()
    return any(entry == bin_path for entry in os.environ.get("PATH", "").split(os.pathsep))


def setup_instructions() -> str:
    """Return instructions for putting the bin directory on PATH for this shell."""
    if is_windows():
        return INSTRUCTION_WINDOWS
    shell = os.environ.get("SHELL", "")
    instruction = next(
        (text for suffix, text in _SHELL_INSTRUCTIONS if shell.endswith(suffix)),
        _INSTRUCTION_GENERIC,
    )
    return _INSTRUCTION_UNIX_TEMPLATE.format(instruction)


def fetch_latest_tag(url: str = GITHUB_VERSION_URL) -> str:
    """Return the tag name of the latest release published at ``url``.

    Raises OSError if the request fails or does not return 200, and ValueError
    if the response cannot be parsed.
    """
    log.debug("Fetching latest tag from %s", url)
    try:
        response = requests.get(url)
    except requests.RequestException as err:
        raise OSError(f"could not GET the latest release: {err}") from err
    try:
        if response.status_code != 200:
            raise OSError(
                f"expected HTTP status 200 OK, got {response.status_code} {response.reason}"
            )
        body = response.text
    finally:
        response.close()

    try:
        parsed = json.loads(body)
    except ValueError as err:
        raise ValueError(f"could not parse the response: {err}") from err
    if not isinstance(parsed, dict):
        raise ValueError("could not parse the response: expected a JSON object")
    tag = parsed.get("tag_name")
    if tag is None:
        tag = ""
    if not isinstance(tag, str):
        raise ValueError("could not parse the response: tag_name is not a string")
    log.debug("Fetched latest tag name (%s)", tag)
    return tag
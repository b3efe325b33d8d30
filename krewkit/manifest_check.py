"""Checks that a plugin manifest file is valid and installs on every platform."""

from __future__ import annotations

import argparse
import logging
import os
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from typing import List, Optional, Sequence

from krewkit.environment import MANIFEST_EXTENSION
from krewkit.manifest import LabelSelector, Platform, ValidationError, validate_plugin
from krewkit.scanner import read_plugin_from_file

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class OSArchPair:
    """An operating system and architecture pair."""

    os: str
    arch: str

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


_ALL_PLATFORMS = (
    OSArchPair("windows", "386"),
    OSArchPair("windows", "amd64"),
    OSArchPair("linux", "386"),
    OSArchPair("linux", "amd64"),
    OSArchPair("linux", "arm"),
    OSArchPair("linux", "arm64"),
    OSArchPair("darwin", "386"),
    OSArchPair("darwin", "amd64"),
)


def all_platforms() -> List[OSArchPair]:
    """Return every supported OS/architecture pair."""
    return list(_ALL_PLATFORMS)


def selector_matches_os_arch(selector: Optional[LabelSelector], env: OSArchPair) -> bool:
    """Return True if ``selector`` selects ``env``; malformed selectors match nothing."""
    if selector is None:
        return False
    try:
        return selector.matches({"os": env.os, "arch": env.arch})
    except ValidationError:
        log.warning("Failed to convert label selector: %s", selector)
        return False


def find_any_matching_platform(selector: Optional[LabelSelector]) -> Optional[OSArchPair]:
    """Return the first supported platform the selector matches, or None."""
    for env in _ALL_PLATFORMS:
        if selector_matches_os_arch(selector, env):
            log.debug("%s MATCHED <%s>", selector, env)
            return env
        log.debug("%s didn't match <%s>", selector, env)
    return None


def check_overlapping_platform_selectors(platforms: Sequence[Platform]) -> None:
    """Raise ValidationError if a supported platform is selected by several entries."""
    for env in _ALL_PLATFORMS:
        matched = [
            i for i, platform in enumerate(platforms)
            if selector_matches_os_arch(platform.selector, env)
        ]
        if len(matched) > 1:
            indexes = " ".join(str(i) for i in matched)
            raise ValidationError(
                f"multiple spec.platforms (at indexes [{indexes}]) have overlapping "
                f"selectors that select {env}"
            )


def install_platform_spec(manifest_file: str, platform: Platform) -> None:
    """Install the manifest into a throw-away root for a platform ``platform`` selects.

    Raises ValidationError if no supported platform matches, and RuntimeError
    if the install command fails.
    """
    env = find_any_matching_platform(platform.selector)
    if env is None:
        raise ValidationError(
            f"no supported platform matched platform selector: {platform.selector}"
        )

    with tempfile.TemporaryDirectory(prefix="krew-test") as tmp_dir:
        command_env = {
            "KREW_ROOT": tmp_dir,
            "KREW_OS": env.os,
            "KREW_ARCH": env.arch,
        }
        log.debug("installing plugin with: %s", command_env)
        command_env["PATH"] = os.environ.get("PATH", "")
        try:
            result = subprocess.run(
                ["kubectl", "krew", "install", "--manifest", manifest_file, "-v=4"],
                env=command_env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                check=False,
            )
        except OSError as err:
            raise RuntimeError(f"plugin install command failed: {err}") from err
        if result.returncode != 0:
            output = (result.stdout or b"").decode("utf-8", errors="replace")
            output = output.replace("\n", "\n\t")
            raise RuntimeError(f"plugin install command failed: {output}")


def _extension(file_name: str) -> str:
    dot = file_name.rfind(".")
    return file_name[dot:] if dot >= 0 else ""


def validate_manifest_file(path: str) -> None:
    """Raise ValidationError unless the manifest at ``path`` is fully usable."""
    log.debug("reading file %s", path)
    try:
        plugin = read_plugin_from_file(path)
    except (OSError, ValidationError) as err:
        raise ValidationError(f"failed to read plugin file: {err}") from err

    file_name = os.path.basename(path)
    extension = _extension(file_name)
    if extension != MANIFEST_EXTENSION:
        raise ValidationError(
            f'expected manifest extension "{MANIFEST_EXTENSION}" but found "{extension}"'
        )
    name = file_name[: -len(extension)]
    log.debug("inferred plugin name as %s", name)

    try:
        validate_plugin(name, plugin)
    except ValidationError as err:
        raise ValidationError(f"plugin validation error: {err}") from err
    log.info("structural validation OK")

    for i, platform in enumerate(plugin.spec.platforms):
        if find_any_matching_platform(platform.selector) is None:
            raise ValidationError(
                f"spec.platform[{i}]'s selector ({platform.selector}) doesn't match "
                "any supported platforms"
            )
    log.info("all spec.platform[] items are used")

    try:
        check_overlapping_platform_selectors(plugin.spec.platforms)
    except ValidationError as err:
        raise ValidationError(f"overlapping platform selectors found: {err}") from err
    log.info("no overlapping spec.platform[].selector")

    for i, platform in enumerate(plugin.spec.platforms):
        log.info("installing spec.platform[%d]", i)
        try:
            install_platform_spec(path, platform)
        except (RuntimeError, ValidationError) as err:
            raise ValidationError(f"spec.platforms[{i}] failed to install: {err}") from err
        log.info("installed  spec.platforms[%d]", i)
    log.info("all %d spec.platforms installed fine", len(plugin.spec.platforms))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Validate the manifest given with --manifest; return the exit status."""
    parser = argparse.ArgumentParser(description="Make sure a plugin manifest file is valid.")
    parser.add_argument("-manifest", "--manifest", default="", help="path to plugin manifest file")
    parser.add_argument("-v", "--verbose", action="store_true", help="verbose logging")
    args = parser.parse_args(argv)
    logging.basicConfig(
        stream=sys.stderr, level=logging.DEBUG if args.verbose else logging.INFO
    )

    if not args.manifest:
        print("-manifest must be specified", file=sys.stderr)
        return 1
    try:
        validate_manifest_file(args.manifest)
    except ValidationError as err:
        print(err, file=sys.stderr)
        return 1
    return 0
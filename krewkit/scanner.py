"""Reading plugin manifests and install receipts from disk."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import IO, Any, Callable, List, TypeVar, Union

import yaml

from krewkit.environment import DEFAULT_INDEX_NAME, MANIFEST_EXTENSION
from krewkit.manifest import Plugin, Receipt, ValidationError, is_safe_plugin_name, validate_plugin

log = logging.getLogger(__name__)

T = TypeVar("T")


def _find_manifest_files(index_dir: str) -> List[str]:
    with os.scandir(index_dir) as entries:
        return sorted(
            entry.name
            for entry in entries
            if entry.is_file(follow_symlinks=False)
            and os.path.splitext(entry.name)[1] == MANIFEST_EXTENSION
        )


def _decode(data: Union[bytes, str], build: Callable[[Any], T]) -> T:
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as err:
        raise ValidationError(f"failed to parse yaml file: {err}") from err
    try:
        return build(raw)
    except ValidationError as err:
        raise ValidationError(f"failed to parse yaml file: {err}") from err


def _validated(plugin: Plugin) -> Plugin:
    try:
        validate_plugin(plugin.name, plugin)
    except ValidationError as err:
        raise ValidationError(f"plugin manifest validation error: {err}") from err
    return plugin


def load_plugin_list(index_dir: str) -> List[Plugin]:
    """Load every valid manifest in ``index_dir``; broken ones are logged and skipped."""
    resolved = str(Path(index_dir).resolve(strict=True))
    files = _find_manifest_files(resolved)
    log.debug("found %d plugins in dir %s", len(files), resolved)

    plugins = []
    for file_name in files:
        plugin_name = os.path.splitext(file_name)[0]
        try:
            plugins.append(load_plugin_by_name(resolved, plugin_name))
        except (ValidationError, OSError) as err:
            log.error("failed to read or parse plugin manifest %r: %s", plugin_name, err)
    return plugins


def load_plugin_by_name(plugins_dir: str, plugin_name: str) -> Plugin:
    """Load the manifest of ``plugin_name``; raises FileNotFoundError if missing."""
    if not is_safe_plugin_name(plugin_name):
        raise ValidationError(f"plugin name {plugin_name!r} not allowed")
    log.debug("Reading plugin %r from %s", plugin_name, plugins_dir)
    return read_plugin_from_file(os.path.join(plugins_dir, plugin_name + MANIFEST_EXTENSION))


def read_plugin_from_file(path: str) -> Plugin:
    """Read and validate a manifest file; raises FileNotFoundError if missing."""
    with open(path, "rb") as handle:
        data = handle.read()
    return _validated(_decode(data, Plugin.from_dict))


def read_plugin(stream: IO[Any]) -> Plugin:
    """Read and validate a manifest from ``stream``, closing it afterwards."""
    try:
        data = stream.read()
    finally:
        stream.close()
    try:
        plugin = _decode(data, Plugin.from_dict)
    except ValidationError as err:
        raise ValidationError(f"failed to decode plugin manifest: {err}") from err
    return _validated(plugin)


def read_receipt_from_file(path: str) -> Receipt:
    """Read a receipt; a missing source index is reported as the default index."""
    with open(path, "rb") as handle:
        data = handle.read()
    receipt = _decode(data, Receipt.from_dict)
    if not receipt.source_index:
        receipt.source_index = DEFAULT_INDEX_NAME
    return receipt


def list_receipts(receipts_dir: str) -> List[Receipt]:
    """Read every receipt file in ``receipts_dir``, in name order."""
    return [
        read_receipt_from_file(os.path.join(receipts_dir, name))
        for name in _find_manifest_files(receipts_dir)
    ]
"""Text output of the plugin manager commands: tables, plugin details and update notes."""

from __future__ import annotations

import re
from typing import Iterable, List, Mapping, Optional, Sequence, TextIO

from krewkit.manifest import Platform, Plugin

_TABLE_PADDING = 2
_LINE_START = re.compile(r"(?m)^")


def _align_cells(lines: List[List[str]], padding: int) -> List[str]:
    """Align tab-separated cells into columns.

    Only cells followed by another cell take part in a column; the last cell
    of each line is written as it is. A column spans consecutive lines that
    all have a cell in it.
    """
    rendered: List[str] = []
    widths: List[int] = []

    def write_lines(first: int, last: int) -> None:
        for line in lines[first:last]:
            rendered.append(
                "".join(
                    cell.ljust(widths[j]) if j < len(widths) else cell
                    for j, cell in enumerate(line)
                )
            )

    def format_block(first: int, last: int) -> None:
        column = len(widths)
        current = first
        while current < last:
            if column >= len(lines[current]) - 1:
                current += 1
                continue
            write_lines(first, current)
            first = current
            width = 0
            while current < last and column < len(lines[current]) - 1:
                width = max(width, len(lines[current][column]) + padding)
                current += 1
            widths.append(width)
            format_block(first, current)
            widths.pop()
            first = current
        write_lines(first, last)

    format_block(0, len(lines))
    return rendered


def print_table(out: TextIO, columns: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
    """Write ``columns`` as a header and then ``rows`` as space-aligned columns."""
    lines = ["\t".join(columns).split("\t")]
    lines.extend("\t".join(values).split("\t") for values in rows)
    for line in _align_cells(lines, _TABLE_PADDING):
        out.write(line + "\n")


def sort_by_first_column(rows: List[List[str]]) -> List[List[str]]:
    """Sort ``rows`` in place by their first value and return them."""
    rows.sort(key=lambda row: row[0])
    return rows


def indent(text: str) -> str:
    """Frame ``text`` between a backslash and a slash, prefixing each line with " | "."""
    body = _LINE_START.sub(" | ", text.rstrip())
    return "\\\n" + body + "\n/"


def limit_string(text: str, length: int) -> str:
    """Shorten ``text`` to ``length`` characters ending in "..." when it is longer."""
    if len(text) > length and length > 3:
        return text[: length - 3] + "..."
    return text


def print_plugin_info(
    out: TextIO, index_name: str, plugin: Plugin, platform: Optional[Platform] = None
) -> None:
    """Write the details of ``plugin``; ``platform`` is the one matching this machine."""
    out.write(f"NAME: {plugin.name}\n")
    out.write(f"INDEX: {index_name}\n")
    if platform is not None and platform.uri:
        out.write(f"URI: {platform.uri}\n")
        out.write(f"SHA256: {platform.sha256}\n")
    spec = plugin.spec
    if spec.version:
        out.write(f"VERSION: {spec.version}\n")
    if spec.homepage:
        out.write(f"HOMEPAGE: {spec.homepage}\n")
    if spec.description:
        out.write(f"DESCRIPTION: \n{spec.description}\n")
    if spec.caveats:
        out.write(f"CAVEATS:\n{indent(spec.caveats)}\n")


def show_formatted_plugins_info(out: TextIO, header: str, plugins: Iterable[str]) -> None:
    """Write ``header`` followed by a bulleted list of ``plugins``."""
    lines = [f"  {header}:\n"]
    lines.extend(f"    * {name}\n" for name in plugins)
    out.write("".join(lines))


def show_updated_plugins(
    out: TextIO,
    pre_update: Iterable[Plugin],
    post_update: Iterable[Plugin],
    installed: Mapping[str, str],
) -> None:
    """Report plugins new to the index and newer versions of installed plugins."""
    old_index = {plugin.name: plugin for plugin in pre_update}
    new_plugins: List[Plugin] = []
    updated_plugins: List[Plugin] = []

    for plugin in post_update:
        old = old_index.get(plugin.name)
        if old is None:
            new_plugins.append(plugin)
            continue
        if plugin.name not in installed:
            continue
        if old.spec.version != plugin.spec.version:
            updated_plugins.append(plugin)

    if new_plugins:
        show_formatted_plugins_info(
            out, "New plugins available", [plugin.name for plugin in new_plugins]
        )
    if updated_plugins:
        show_formatted_plugins_info(
            out,
            "Upgrades available for installed plugins",
            [
                f"{plugin.name} {old_index[plugin.name].spec.version} -> {plugin.spec.version}"
                for plugin in updated_plugins
            ],
        )
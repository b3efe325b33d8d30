"""Generating a markdown overview page of the plugins in an index directory."""

from __future__ import annotations

import argparse
import re
import sys
from typing import Iterable, Optional, Sequence

from krewkit.manifest import Plugin, ValidationError
from krewkit.scanner import load_plugin_list

SEPARATOR = " | "

PAGE_HEADER = """## Available kubectl plugins

To install these kubectl plugins:

1. Install Krew.
2. Run `kubectl krew install PLUGIN_NAME` to install a plugin via Krew.

The following kubectl plugins are currently available on the Krew plugin
index. Note that this table may be outdated. For the most up-to-date list of
plugins, run <code>kubectl krew search</code>.
"""

PAGE_FOOTER = """

---

_This page is generated by running the generate-plugin-overview tool._
"""

_GITHUB_REPO = re.compile(r".*github\.com/([^/]+/[^/#]+)")

_KNOWN_HOME_PAGES = {
    "https://sigs.k8s.io/krew": "kubernetes-sigs/krew",
    "https://kubernetes.github.io/ingress-nginx/kubectl-plugin/": "kubernetes/ingress-nginx",
    "https://kudo.dev/": "kudobuilder/kudo",
    "https://kubevirt.io": "kubevirt/kubectl-virt-plugin",
    "https://popeyecli.io": "derailed/popeye",
}


def find_repo(home_page: str) -> str:
    """Return the ``owner/repo`` of a GitHub home page, or "" if unknown."""
    match = _GITHUB_REPO.search(home_page)
    if match:
        return match.group(1)
    return _KNOWN_HOME_PAGES.get(home_page, "")


def make_github_shield(home_page: str) -> str:
    """Return a markdown star-count badge for the home page's repository, or ""."""
    repo = find_repo(home_page)
    if not repo:
        return ""
    return (
        "![GitHub stars](https://img.shields.io/github/stars/"
        + repo
        + ".svg?label=stars&logo=github)"
    )


def format_row(*columns: str) -> str:
    """Join table columns with the markdown separator."""
    return SEPARATOR.join(columns)


def _plugin_row(plugin: Plugin) -> str:
    name = plugin.name
    homepage = plugin.spec.homepage
    if homepage:
        name = f"[{name.strip()}]({homepage})"
    description = plugin.spec.short_description.strip()
    return format_row(name, description, make_github_shield(homepage))


def render_overview(plugins: Iterable[Plugin]) -> str:
    """Render the full overview page for ``plugins``."""
    lines = [
        PAGE_HEADER,
        format_row("Name", "Description", "Stars"),
        format_row("----", "-----------", "-----"),
    ]
    lines.extend(_plugin_row(plugin) for plugin in plugins)
    lines.append(PAGE_FOOTER)
    return "\n".join(lines) + "\n"


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Print the overview page for --plugins-dir; return the exit status."""
    parser = argparse.ArgumentParser(
        description="Create a markdown overview page from the manifests in a directory."
    )
    parser.add_argument(
        "-plugins-dir",
        "--plugins-dir",
        dest="plugins_dir",
        default="",
        help="The directory containing the plugin manifests",
    )
    args = parser.parse_args(argv)
    if not args.plugins_dir:
        parser.print_usage(sys.stderr)
        return 0
    try:
        plugins = load_plugin_list(args.plugins_dir)
    except (OSError, ValidationError) as err:
        print(err, file=sys.stderr)
        return 1
    sys.stdout.write(render_overview(plugins))
    return 0
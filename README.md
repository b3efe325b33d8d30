# krewkit

krewkit is a library of building blocks for a kubectl plugin manager. It
ships two small command-line tools built on it:

- one that validates a plugin manifest;
- one that renders a Markdown overview of a plugin index.

A plugin index is a git repository of YAML plugin manifests.

## Installation

```
pip install krewkit
```

`git` must be on your `PATH` for the index functions in `krewkit.gitutil`
and `krewkit.indexoperations`.

## Validating a manifest

```
krewkit-validate-manifest --manifest plugins/foo.yaml
```

Add `-v` for debug logging. The command exits with status 0 when the
manifest passes every check, and with status 1 otherwise, after printing
the reason. The checks run in this order:

1. The file is read and validated structurally: API version, kind, name,
   short description (present and on one line), a `v`-prefixed semantic
   version, and at least one platform. Each platform needs a URI, a
   lower-case hex SHA-256, a `bin` and well-formed file operations. Its
   selector must be non-empty and use only the `os` and `arch` keys.
2. The file extension must be `.yaml`. The file name without it must equal
   the plugin name.
3. Every platform selector must match at least one supported OS/architecture
   pair: windows/386, windows/amd64, linux/386, linux/amd64, linux/arm,
   linux/arm64, darwin/386 or darwin/amd64.
4. No supported pair may be selected by more than one platform.
5. For each platform, `kubectl krew install --manifest FILE -v=4` is run in
   a temporary root. `KREW_ROOT`, `KREW_OS` and `KREW_ARCH` are set for that
   run. This step needs a `kubectl krew` command on your `PATH`.

## Generating an overview page

```
krewkit-plugin-overview --plugins-dir path/to/index/plugins > plugins.md
```

This prints a Markdown page with a table of the plugins in the directory.
Each row has:

- the plugin's name, linked to its homepage when it has one;
- its short description;
- a stars badge, when the homepage is a GitHub repository or one of a few
  known project pages.

Manifests that fail to load are logged and left out. Without
`--plugins-dir`, the tool prints its usage and exits.

## Using it as a library

```python
from krewkit.environment import Paths
from krewkit.manifest import ValidationError, validate_plugin
from krewkit.scanner import load_plugin_list, read_plugin_from_file

paths = Paths("/tmp/krew-home")
for plugin in load_plugin_list(paths.index_plugins_path("default")):
    print(plugin.name, plugin.spec.version)

plugin = read_plugin_from_file("foo.yaml")  # already validated against its own name
try:
    validate_plugin("foo", plugin)
except ValidationError as exc:
    print(f"invalid manifest: {exc}")
```

The modules:

- `krewkit.environment`: `Paths` describes the directory layout (index,
  receipts, bin, store). `must_get_krew_paths()` uses `~/.krew`, or
  `KREW_ROOT` when it is set. When `X_KREW_ENABLE_MULTI_INDEX` is set, each
  index gets its own directory under `index/`. `realpath()` resolves one
  absolute symbolic link and rejects relative ones.
- `krewkit.manifest`: the `Plugin`, `Platform`, `LabelSelector` and
  `Receipt` dataclasses, with `from_dict`/`to_dict`, and the `validate_*`
  functions. `LabelSelector.matches()` evaluates `matchLabels` and the `In`,
  `NotIn`, `Exists` and `DoesNotExist` expressions.
- `krewkit.scanner`: reads manifests and receipts from files or streams.
  `load_plugin_by_name()` and `read_plugin_from_file()` raise
  `FileNotFoundError` for missing files. `read_receipt_from_file()` reports
  receipts without a source index as coming from `default`.
- `krewkit.download`: `Downloader(verifier, fetcher).get(uri, dst)` fetches
  an archive with `HTTPFetcher` or `FileFetcher`, checks it with
  `Sha256Verifier`, and unpacks it into `dst`. The archive type is sniffed
  from its content: ZIP or gzipped tar. Entries containing `..` or starting
  with `/` or `\` are refused with `DownloadError`.
- `krewkit.gitutil`: `ensure_cloned`, `ensure_updated` (fetch, hard reset to
  upstream, remove untracked files) and `get_remote_url`. Failures raise
  `GitError`.
- `krewkit.indexoperations`: `list_indexes`, `add_index` and `delete_index`
  for the configured indexes. Index names may hold only letters, digits,
  `_` and `-`.
- `krewkit.indexmigration`: `done()` and `migrate()` move a single index
  clone into `index/default`.
- `krewkit.notices`: `print_warning`, `print_security_notice`,
  `is_bin_dir_in_path` and `setup_instructions`. `setup_instructions`
  returns shell-specific advice for adding the bin directory to `PATH`.
  `fetch_latest_tag(url)` reads `tag_name` from a release API response.
- `krewkit.output`: `print_table` (space-aligned columns), `indent`,
  `limit_string`, `print_plugin_info` and `show_updated_plugins`, which
  lists new plugins and available upgrades after an index update.

## What it does not do

krewkit has no `kubectl krew`-style front end. There are no `install`,
`uninstall`, `upgrade`, `update`, `search`, `list` or `index` commands.
The package does not download a plugin into the store, link its executable
into `bin/`, or write install receipts. It reads receipts, but something
else must create them. The manifest validator leaves the install trial to
an external `kubectl krew` command.

## Running the tests

```
pip install -e ".[test]"
pytest
```
"""Plugin manifest and receipt types, and their structural validation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import semver

CURRENT_API_VERSION = "krew.googlecontainertools.github.com/v1alpha2"
PLUGIN_KIND = "Plugin"
SHA256_PATTERN = r"^[a-f0-9]{64}$"

_SAFE_PLUGIN_NAME = re.compile(r"^[\w-]+$", re.ASCII)
_VALID_SHA256 = re.compile(SHA256_PATTERN)

# Device names that cannot be used as file names on Windows.
_WINDOWS_FORBIDDEN = (
    "CON", "PRN", "AUX", "NUL", "COM1", "COM2", "COM3", "COM4", "COM5", "COM6",
    "COM7", "COM8", "COM9", "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6",
    "LPT7", "LPT8", "LPT9",
)

_SUPPORTED_SELECTOR_KEYS = frozenset({"os", "arch"})

_OP_IN = "In"
_OP_NOT_IN = "NotIn"
_OP_EXISTS = "Exists"
_OP_DOES_NOT_EXIST = "DoesNotExist"


class ValidationError(ValueError):
    """Raised when a manifest is malformed or structurally invalid."""


def _mapping(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ValidationError(f"{what} must be a mapping")
    return value


def _string(value: Any, what: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{what} must be a string")
    return value


def _list(value: Any, what: str) -> Optional[list]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ValidationError(f"{what} must be a list")
    return value


@dataclass
class FileOperation:
    """Copies files matching ``from_`` in the archive to ``to`` in the install dir."""

    from_: str = ""
    to: str = ""


@dataclass
class SelectorRequirement:
    """A single ``matchExpressions`` entry of a label selector."""

    key: str = ""
    operator: str = ""
    values: List[str] = field(default_factory=list)

    def _check(self) -> None:
        if self.operator in (_OP_IN, _OP_NOT_IN):
            if not self.values:
                raise ValidationError(
                    f"values: for 'in', 'notin' operators, values set can't be empty (key {self.key!r})"
                )
        elif self.operator in (_OP_EXISTS, _OP_DOES_NOT_EXIST):
            if self.values:
                raise ValidationError(
                    f"values: values set must be empty for exists and does not exist (key {self.key!r})"
                )
        else:
            raise ValidationError(f"{self.operator!r} is not a valid pod selector operator")

    def _matches(self, labels: Mapping[str, str]) -> bool:
        present = self.key in labels
        if self.operator == _OP_IN:
            return present and labels[self.key] in self.values
        if self.operator == _OP_NOT_IN:
            return not present or labels[self.key] not in self.values
        if self.operator == _OP_EXISTS:
            return present
        return not present


@dataclass
class LabelSelector:
    """A label selector; ``None`` fields mean the part was not specified."""

    match_labels: Optional[Dict[str, str]] = None
    match_expressions: Optional[List[SelectorRequirement]] = None

    def matches(self, labels: Mapping[str, str]) -> bool:
        """Return True if ``labels`` satisfy every requirement of the selector.

        Raises ValidationError if the selector itself is malformed.
        """
        expressions = self.match_expressions or []
        for requirement in expressions:
            requirement._check()
        for key, value in (self.match_labels or {}).items():
            if key not in labels or labels[key] != value:
                return False
        return all(requirement._matches(labels) for requirement in expressions)

    @classmethod
    def from_dict(cls, data: Any) -> "LabelSelector":
        data = _mapping(data, "selector")
        raw_labels = data.get("matchLabels")
        match_labels = None
        if raw_labels is not None:
            match_labels = {
                _string(k, "selector.matchLabels key"): _string(v, f"selector.matchLabels[{k}]")
                for k, v in _mapping(raw_labels, "selector.matchLabels").items()
            }
        raw_exprs = _list(data.get("matchExpressions"), "selector.matchExpressions")
        match_expressions = None
        if raw_exprs is not None:
            match_expressions = []
            for raw in raw_exprs:
                entry = _mapping(raw, "selector.matchExpressions[]")
                values = _list(entry.get("values"), "selector.matchExpressions[].values") or []
                match_expressions.append(
                    SelectorRequirement(
                        key=_string(entry.get("key"), "selector.matchExpressions[].key"),
                        operator=_string(entry.get("operator"), "selector.matchExpressions[].operator"),
                        values=[_string(v, "selector.matchExpressions[].values[]") for v in values],
                    )
                )
        return cls(match_labels=match_labels, match_expressions=match_expressions)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.match_labels is not None:
            out["matchLabels"] = dict(self.match_labels)
        if self.match_expressions is not None:
            out["matchExpressions"] = [
                {"key": r.key, "operator": r.operator, "values": list(r.values)}
                for r in self.match_expressions
            ]
        return out


@dataclass
class Platform:
    """Where to download a plugin for the platforms its selector matches."""

    uri: str = ""
    sha256: str = ""
    bin: str = ""
    files: Optional[List[FileOperation]] = None
    selector: Optional[LabelSelector] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Platform":
        data = _mapping(data, "platform")
        raw_files = _list(data.get("files"), "platform.files")
        files = None
        if raw_files is not None:
            files = []
            for raw in raw_files:
                entry = _mapping(raw, "platform.files[]")
                files.append(
                    FileOperation(
                        from_=_string(entry.get("from"), "platform.files[].from"),
                        to=_string(entry.get("to"), "platform.files[].to"),
                    )
                )
        raw_selector = data.get("selector")
        return cls(
            uri=_string(data.get("uri"), "platform.uri"),
            sha256=_string(data.get("sha256"), "platform.sha256"),
            bin=_string(data.get("bin"), "platform.bin"),
            files=files,
            selector=None if raw_selector is None else LabelSelector.from_dict(raw_selector),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.uri:
            out["uri"] = self.uri
        if self.sha256:
            out["sha256"] = self.sha256
        if self.selector is not None:
            out["selector"] = self.selector.to_dict()
        if self.files is not None:
            out["files"] = [{"from": f.from_, "to": f.to} for f in self.files]
        out["bin"] = self.bin
        return out


@dataclass
class PluginSpec:
    """The descriptive and platform part of a plugin manifest."""

    version: str = ""
    short_description: str = ""
    description: str = ""
    caveats: str = ""
    homepage: str = ""
    platforms: List[Platform] = field(default_factory=list)


_SPEC_FIELDS = (
    ("version", "version"),
    ("shortDescription", "short_description"),
    ("description", "description"),
    ("caveats", "caveats"),
    ("homepage", "homepage"),
)


def _spec_from_dict(data: Any) -> PluginSpec:
    data = _mapping(data, "spec")
    strings = {attr: _string(data.get(key), f"spec.{key}") for key, attr in _SPEC_FIELDS}
    platforms = [Platform.from_dict(p) for p in _list(data.get("platforms"), "spec.platforms") or []]
    return PluginSpec(platforms=platforms, **strings)


def _spec_to_dict(spec: PluginSpec) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, attr in _SPEC_FIELDS:
        value = getattr(spec, attr)
        if value:
            out[key] = value
    if spec.platforms:
        out["platforms"] = [p.to_dict() for p in spec.platforms]
    return out


@dataclass
class Plugin:
    """A plugin manifest."""

    name: str = ""
    api_version: str = ""
    kind: str = ""
    spec: PluginSpec = field(default_factory=PluginSpec)

    @classmethod
    def from_dict(cls, data: Any) -> "Plugin":
        data = _mapping(data, "manifest")
        metadata = _mapping(data.get("metadata"), "metadata")
        return cls(
            name=_string(metadata.get("name"), "metadata.name"),
            api_version=_string(data.get("apiVersion"), "apiVersion"),
            kind=_string(data.get("kind"), "kind"),
            spec=_spec_from_dict(data.get("spec")),
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.api_version:
            out["apiVersion"] = self.api_version
        if self.kind:
            out["kind"] = self.kind
        out["metadata"] = {"name": self.name}
        out["spec"] = _spec_to_dict(self.spec)
        return out


@dataclass
class Receipt:
    """Record of an installed plugin and the index it came from."""

    plugin: Plugin = field(default_factory=Plugin)
    source_index: str = ""

    @property
    def name(self) -> str:
        return self.plugin.name

    @property
    def spec(self) -> PluginSpec:
        return self.plugin.spec

    @classmethod
    def from_dict(cls, data: Any) -> "Receipt":
        data = _mapping(data, "receipt")
        status = _mapping(data.get("status"), "status")
        source = _mapping(status.get("source"), "status.source")
        return cls(
            plugin=Plugin.from_dict(data),
            source_index=_string(source.get("name"), "status.source.name"),
        )

    def to_dict(self) -> Dict[str, Any]:
        out = self.plugin.to_dict()
        out["status"] = {"source": {"name": self.source_index}}
        return out


def is_safe_plugin_name(name: str) -> bool:
    """Return True if ``name`` is safe to use as a plugin (and file) name."""
    if not _SAFE_PLUGIN_NAME.fullmatch(name):
        return False
    upper = name.upper()
    return not any(upper == forbidden for forbidden in _WINDOWS_FORBIDDEN)


def is_supported_api_version(api_version: str) -> bool:
    """Return True if manifests of ``api_version`` are understood."""
    return api_version == CURRENT_API_VERSION


def is_valid_sha256(value: str) -> bool:
    """Return True if ``value`` is a lower-case hex SHA-256 digest."""
    return _VALID_SHA256.fullmatch(value) is not None


def is_valid_semver(version: str) -> bool:
    """Return True if ``version`` is a ``v``-prefixed semantic version."""
    if not version.startswith("v"):
        return False
    try:
        semver.Version.parse(version[1:])
    except ValueError:
        return False
    return True


def validate_plugin(name: str, plugin: Plugin) -> None:
    """Raise ValidationError unless ``plugin`` is a valid manifest named ``name``."""
    if not is_supported_api_version(plugin.api_version):
        raise ValidationError(
            f"plugin manifest has apiVersion={plugin.api_version!r}, not supported in this "
            "version of krew (try updating plugin index or install a newer version of krew)"
        )
    if plugin.kind != PLUGIN_KIND:
        raise ValidationError(
            f"plugin manifest has kind={plugin.kind!r}, but only {PLUGIN_KIND!r} is supported"
        )
    if not is_safe_plugin_name(name):
        raise ValidationError(
            f"the plugin name {name!r} is not allowed, must match {_SAFE_PLUGIN_NAME.pattern!r}"
        )
    if plugin.name != name:
        raise ValidationError(f"plugin should be named {name!r}, not {plugin.name!r}")
    spec = plugin.spec
    if not spec.short_description:
        raise ValidationError("should have a short description")
    if "\r" in spec.short_description or "\n" in spec.short_description:
        raise ValidationError("should not have line breaks in short description")
    if not spec.platforms:
        raise ValidationError("should have a platform specified")
    if not spec.version:
        raise ValidationError("should have a version specified")
    if not is_valid_semver(spec.version):
        raise ValidationError(f"failed to parse plugin version: {spec.version!r} is not a valid semver")
    for platform in spec.platforms:
        try:
            validate_platform(platform)
        except ValidationError as err:
            raise ValidationError(f"platform ({platform}) is badly constructed: {err}") from err


def validate_platform(platform: Platform) -> None:
    """Raise ValidationError unless ``platform`` is structurally valid."""
    if not platform.uri:
        raise ValidationError("`uri` has to be set")
    if not platform.sha256:
        raise ValidationError("`sha256` sum has to be set")
    if not is_valid_sha256(platform.sha256):
        raise ValidationError(
            f"`sha256` value {platform.sha256} is not valid, must match pattern {SHA256_PATTERN}"
        )
    if not platform.bin:
        raise ValidationError("`bin` has to be set")
    try:
        validate_files(platform.files)
    except ValidationError as err:
        raise ValidationError(f"`files` is invalid: {err}") from err
    try:
        validate_selector(platform.selector)
    except ValidationError as err:
        raise ValidationError(f"invalid platform selector: {err}") from err


def validate_files(files: Optional[List[FileOperation]]) -> None:
    """Raise ValidationError if file operations are given but empty or incomplete."""
    if files is None:
        return
    if not files:
        raise ValidationError("`files` has to be unspecified or non-empty")
    for op in files:
        if not op.from_:
            raise ValidationError("`from` field has to be set")
        if not op.to:
            raise ValidationError("`to` field has to be set")


def validate_selector(selector: Optional[LabelSelector]) -> None:
    """Raise ValidationError unless the selector is non-empty and uses only os/arch."""
    if selector is None:
        raise ValidationError("nil selector is not supported")
    if selector.match_labels is None and not selector.match_expressions:
        raise ValidationError("empty selector is not supported")

    keys = list(selector.match_labels or {})
    keys.extend(expr.key for expr in selector.match_expressions or [])
    for key in keys:
        if key not in _SUPPORTED_SELECTOR_KEYS:
            raise ValidationError(f"key {key!r} not supported")

    if selector.match_labels is not None and not selector.match_labels:
        raise ValidationError("`matchLabels` specified but empty")
    if selector.match_expressions is not None and not selector.match_expressions:
        raise ValidationError("`matchExpressions` specified but empty")
from dataclasses import replace

import pytest

from krewkit.manifest import (
    CURRENT_API_VERSION,
    PLUGIN_KIND,
    FileOperation,
    LabelSelector,
    Platform,
    Plugin,
    PluginSpec,
    Receipt,
    SelectorRequirement,
    ValidationError,
    is_safe_plugin_name,
    is_supported_api_version,
    is_valid_semver,
    is_valid_sha256,
    validate_files,
    validate_platform,
    validate_plugin,
    validate_selector,
)

SHA = "a" * 64


def make_platform(**overrides):
    base = Platform(
        uri="https://example.com/foo.tar.gz",
        sha256=SHA,
        bin="kubectl-foo",
        files=[FileOperation(from_="*", to=".")],
        selector=LabelSelector(match_labels={"os": "linux"}),
    )
    return replace(base, **overrides)


def make_plugin(name="foo", api_version=CURRENT_API_VERSION, kind=PLUGIN_KIND, platforms=None, **spec):
    spec_values = {"version": "v1.0.0", "short_description": "short"}
    spec_values.update(spec)
    if platforms is None:
        platforms = [make_platform()]
    return Plugin(
        name=name,
        api_version=api_version,
        kind=kind,
        spec=PluginSpec(platforms=platforms, **spec_values),
    )


@pytest.mark.parametrize(
    "name, want",
    [("foo-bar", True), ("/foo-bar", False), ("..foo-bar", False), ("nul", False), ("foo\n", False)],
)
def test_is_safe_plugin_name(name, want):
    assert is_safe_plugin_name(name) is want


@pytest.mark.parametrize(
    "version, want",
    [
        ("networking.k8s.io/v1", False),
        ("krew.googlecontainertools.github.com", False),
        ("krew.googlecontainertools.github.com/v1alpha1", False),
        ("krew.googlecontainertools.github.com/v1alpha2", True),
        ("krew.googlecontainertools.github.com/v1alpha3", False),
        ("krew.googlecontainertools.github.com/v1", False),
        ("krew.googlecontainertools.github.com/v2alpha1", False),
    ],
)
def test_is_supported_api_version(version, want):
    assert is_supported_api_version(version) is want


def test_is_valid_sha256():
    assert is_valid_sha256(SHA) is True
    assert is_valid_sha256("A" * 64) is False
    assert is_valid_sha256("a" * 63) is False


@pytest.mark.parametrize(
    "version, want",
    [("v1.0.0", True), ("v1.2.3-alpha.1+build", True), ("1.0.0", False), ("v01.02.3-a", False), ("", False)],
)
def test_is_valid_semver(version, want):
    assert is_valid_semver(version) is want


def test_validate_plugin_success():
    assert validate_plugin("foo", make_plugin()) is None


@pytest.mark.parametrize(
    "plugin_name, plugin",
    [
        ("orange", make_plugin(name="apple")),
        ("foo", make_plugin(api_version="core/v1")),
        ("foo", make_plugin(kind="Not" + PLUGIN_KIND)),
        ("foo", make_plugin(short_description="")),
        ("foo", make_plugin(version="")),
        ("foo", make_plugin(version="v01.02.3-a")),
        ("foo", make_plugin(platforms=[])),
        ("foo", make_plugin(platforms=[make_platform(files=[])])),
        ("../foo", make_plugin(name="../foo")),
        ("foo", make_plugin(short_description="just foo\n")),
        ("foo", make_plugin(short_description="just foo\r")),
        ("foo", make_plugin(short_description="just\r\nfoo")),
    ],
)
def test_validate_plugin_errors(plugin_name, plugin):
    with pytest.raises(ValidationError):
        validate_plugin(plugin_name, plugin)


def test_validate_plugin_name_mismatch_message():
    with pytest.raises(ValidationError, match="plugin should be named"):
        validate_plugin("orange", make_plugin(name="apple"))


def test_validate_platform_success():
    assert validate_platform(make_platform()) is None


@pytest.mark.parametrize(
    "platform",
    [
        make_platform(uri=""),
        make_platform(sha256=""),
        make_platform(sha256="xyz"),
        make_platform(files=[]),
        make_platform(bin=""),
        make_platform(selector=LabelSelector(match_labels={"unsupported-field": "orange"})),
    ],
)
def test_validate_platform_errors(platform):
    with pytest.raises(ValidationError):
        validate_platform(platform)


IN_EXPR = [SelectorRequirement(key="os", operator="In", values=["apple", "orange"])]


@pytest.mark.parametrize(
    "selector, wants_error",
    [
        (None, True),
        (LabelSelector(), True),
        (LabelSelector(match_labels={"os": "foo", "arch": "bar"}), False),
        (LabelSelector(match_expressions=IN_EXPR), False),
        (LabelSelector(match_labels={}), True),
        (LabelSelector(match_expressions=[]), True),
        (LabelSelector(match_labels={"unsupported-key": "value"}), True),
        (
            LabelSelector(
                match_expressions=[
                    SelectorRequirement(key="unsupported-key", operator="In", values=["apple", "orange"])
                ]
            ),
            True,
        ),
    ],
)
def test_validate_selector(selector, wants_error):
    if wants_error:
        with pytest.raises(ValidationError):
            validate_selector(selector)
    else:
        assert validate_selector(selector) is None


@pytest.mark.parametrize(
    "files, wants_error",
    [
        ([FileOperation(from_="here", to="there")], False),
        (None, False),
        ([], True),
        ([FileOperation(from_="present", to="")], True),
        ([FileOperation(from_="", to="present")], True),
    ],
)
def test_validate_files(files, wants_error):
    if wants_error:
        with pytest.raises(ValidationError):
            validate_files(files)
    else:
        assert validate_files(files) is None


def test_selector_match_labels():
    selector = LabelSelector(match_labels={"os": "darwin"})
    assert selector.matches({"os": "darwin", "arch": "amd64"}) is True
    assert selector.matches({"os": "windows", "arch": "amd64"}) is False
    assert selector.matches({}) is False


@pytest.mark.parametrize(
    "operator, values, labels, want",
    [
        ("In", ["darwin", "linux"], {"os": "linux"}, True),
        ("In", ["darwin", "linux"], {"os": "windows"}, False),
        ("NotIn", ["darwin"], {"os": "linux"}, True),
        ("NotIn", ["darwin"], {}, True),
        ("NotIn", ["darwin"], {"os": "darwin"}, False),
        ("Exists", [], {"os": "x"}, True),
        ("Exists", [], {}, False),
        ("DoesNotExist", [], {}, True),
        ("DoesNotExist", [], {"os": "x"}, False),
    ],
)
def test_selector_expressions(operator, values, labels, want):
    selector = LabelSelector(match_expressions=[SelectorRequirement("os", operator, values)])
    assert selector.matches(labels) is want


def test_empty_selector_matches_everything():
    assert LabelSelector().matches({}) is True


def test_invalid_operator_raises():
    selector = LabelSelector(match_expressions=[SelectorRequirement("os", "Like", ["x"])])
    with pytest.raises(ValidationError):
        selector.matches({"os": "x"})


def test_in_without_values_raises():
    selector = LabelSelector(match_expressions=[SelectorRequirement("os", "In", [])])
    with pytest.raises(ValidationError):
        selector.matches({"os": "x"})


def test_plugin_round_trip():
    plugin = make_plugin(
        homepage="https://example.com",
        caveats="careful",
        description="long text",
        platforms=[
            make_platform(),
            make_platform(files=None, selector=LabelSelector(match_expressions=IN_EXPR)),
        ],
    )
    assert Plugin.from_dict(plugin.to_dict()) == plugin


def test_plugin_from_dict_reads_yaml_keys():
    plugin = Plugin.from_dict(
        {
            "apiVersion": CURRENT_API_VERSION,
            "kind": "Plugin",
            "metadata": {"name": "foo"},
            "spec": {
                "version": "v1.0.0",
                "shortDescription": "short",
                "platforms": [
                    {"uri": "u", "sha256": SHA, "bin": "b", "files": [{"from": "a", "to": "b"}],
                     "selector": {"matchLabels": {"os": "macos"}}}
                ],
            },
        }
    )
    assert plugin.name == "foo"
    assert plugin.spec.short_description == "short"
    assert plugin.spec.platforms[0].files == [FileOperation(from_="a", to="b")]
    assert plugin.spec.platforms[0].selector.match_labels == {"os": "macos"}


def test_plugin_from_dict_rejects_bad_types():
    with pytest.raises(ValidationError):
        Plugin.from_dict({"metadata": {"name": 5}})
    with pytest.raises(ValidationError):
        Plugin.from_dict(["not", "a", "mapping"])


def test_receipt_round_trip():
    receipt = Receipt(plugin=make_plugin(), source_index="custom")
    again = Receipt.from_dict(receipt.to_dict())
    assert again == receipt
    assert again.name == "foo"
    assert again.spec.version == "v1.0.0"
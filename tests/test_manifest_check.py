import subprocess
from unittest.mock import patch

import pytest
import yaml

from krewkit.manifest import (
    CURRENT_API_VERSION,
    PLUGIN_KIND,
    LabelSelector,
    Platform,
    Plugin,
    PluginSpec,
    SelectorRequirement,
    ValidationError,
)
from krewkit.manifest_check import (
    OSArchPair,
    all_platforms,
    check_overlapping_platform_selectors,
    find_any_matching_platform,
    install_platform_spec,
    main,
    selector_matches_os_arch,
    validate_manifest_file,
)


def with_os(os_name):
    return LabelSelector(match_labels={"os": os_name})


def with_os_arch(os_name, arch):
    return LabelSelector(match_labels={"os": os_name, "arch": arch})


def with_oses(*os_names):
    return LabelSelector(match_expressions=[SelectorRequirement("os", "In", list(os_names))])


def make_platform(selector=None):
    return Platform(
        uri="https://example.com/foo.tar.gz",
        sha256="a" * 64,
        bin="foo",
        selector=selector if selector is not None else with_os("linux"),
    )


def make_plugin(name, *platforms):
    return Plugin(
        name=name,
        api_version=CURRENT_API_VERSION,
        kind=PLUGIN_KIND,
        spec=PluginSpec(
            version="v1.0.0",
            short_description="short",
            platforms=list(platforms) or [make_platform()],
        ),
    )


def write_manifest(tmp_path, file_name, plugin):
    path = tmp_path / file_name
    path.write_text(yaml.safe_dump(plugin.to_dict()))
    return str(path)


@pytest.mark.parametrize(
    "file_name, plugin, message",
    [
        ("test.yml", make_plugin("test"), 'expected manifest extension ".yaml"'),
        ("foo.yaml", make_plugin("not-foo"), "plugin validation error"),
        (
            "test.yaml",
            make_plugin("test", make_platform(with_os_arch("darwin", "arm"))),
            "doesn't match any supported platforms",
        ),
        (
            "test.yaml",
            make_plugin(
                "test",
                make_platform(with_os("linux")),
                make_platform(with_os_arch("linux", "amd64")),
            ),
            "overlapping platform selectors found",
        ),
    ],
)
def test_validate_manifest_file_errors(tmp_path, file_name, plugin, message):
    path = write_manifest(tmp_path, file_name, plugin)
    with pytest.raises(ValidationError) as info:
        validate_manifest_file(path)
    assert message in str(info.value)


def test_validate_manifest_file_missing(tmp_path):
    with pytest.raises(ValidationError, match="failed to read plugin file"):
        validate_manifest_file(str(tmp_path / "test.yaml"))


def test_validate_manifest_file_installs_every_platform(tmp_path):
    plugin = make_plugin("test", make_platform(with_os("linux")), make_platform(with_os("darwin")))
    path = write_manifest(tmp_path, "test.yaml", plugin)
    done = subprocess.CompletedProcess([], 0, stdout=b"")
    with patch("krewkit.manifest_check.subprocess.run", return_value=done) as run:
        result = validate_manifest_file(path)
    assert result is None
    assert run.call_count == 2
    envs = [call.kwargs["env"] for call in run.call_args_list]
    assert [env["KREW_OS"] for env in envs] == ["linux", "darwin"]
    assert [env["KREW_ARCH"] for env in envs] == ["386", "386"]


@pytest.mark.parametrize(
    "selector, env, expected",
    [
        (with_os("darwin"), OSArchPair("windows", "amd64"), False),
        (with_os("darwin"), OSArchPair("darwin", "amd64"), True),
        (with_oses("darwin", "linux"), OSArchPair("windows", "amd64"), False),
        (with_oses("darwin", "linux"), OSArchPair("darwin", "amd64"), True),
    ],
)
def test_selector_matches_os_arch(selector, env, expected):
    assert selector_matches_os_arch(selector, env) is expected


def test_selector_matches_nothing_when_malformed():
    bad = LabelSelector(match_expressions=[SelectorRequirement("os", "Bogus", ["x"])])
    assert selector_matches_os_arch(bad, OSArchPair("linux", "amd64")) is False
    assert selector_matches_os_arch(None, OSArchPair("linux", "amd64")) is False


def test_find_any_matching_platform():
    env = find_any_matching_platform(with_os("darwin"))
    assert env == OSArchPair("darwin", "386")
    assert find_any_matching_platform(with_os("non-existing")) is None
    env3 = find_any_matching_platform(with_oses("darwin", "linux"))
    assert env3 is not None and env3.os in ("darwin", "linux") and env3.arch


def test_all_platforms_are_unique_and_complete():
    platforms = all_platforms()
    assert len(platforms) == len(set(platforms)) == 8
    assert OSArchPair("linux", "arm64") in platforms


def test_overlapping_no_overlap():
    platforms = [make_platform(with_oses("darwin", "linux")), make_platform(with_oses("windows"))]
    check_overlapping_platform_selectors(platforms)
    assert find_any_matching_platform(platforms[1].selector).os == "windows"


def test_overlapping_overlap():
    platforms = [make_platform(with_os("darwin")), make_platform(with_oses("darwin", "linux"))]
    with pytest.raises(ValidationError, match=r"at indexes \[0 1\]"):
        check_overlapping_platform_selectors(platforms)


def test_install_platform_spec_without_match():
    with pytest.raises(ValidationError, match="no supported platform matched"):
        install_platform_spec("x.yaml", make_platform(with_os("plan9")))


def test_install_platform_spec_passes_environment():
    done = subprocess.CompletedProcess([], 0, stdout=b"")
    with patch("krewkit.manifest_check.subprocess.run", return_value=done) as run:
        result = install_platform_spec("m.yaml", make_platform(with_os_arch("linux", "arm")))
    assert result is None
    args, kwargs = run.call_args
    assert args[0] == ["kubectl", "krew", "install", "--manifest", "m.yaml", "-v=4"]
    assert kwargs["env"]["KREW_OS"] == "linux"
    assert kwargs["env"]["KREW_ARCH"] == "arm"
    assert "KREW_ROOT" in kwargs["env"]


def test_install_platform_spec_failure():
    failed = subprocess.CompletedProcess([], 1, stdout=b"line1\nline2")
    with patch("krewkit.manifest_check.subprocess.run", return_value=failed):
        with pytest.raises(RuntimeError, match="line1\n\tline2"):
            install_platform_spec("m.yaml", make_platform(with_os("linux")))


def test_main_requires_manifest(capsys):
    assert main([]) == 1
    assert "-manifest must be specified" in capsys.readouterr().err


def test_main_reports_missing_file(tmp_path, capsys):
    assert main(["--manifest", str(tmp_path / "x.yaml")]) == 1
    assert "failed to read plugin file" in capsys.readouterr().err
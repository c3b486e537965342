"""Tests for version and description resolution."""
import json
from datetime import datetime

import pytest

from publisher.services.versioning import VersionResolver, env_label, parse_tag_version


FIXED_NOW = datetime(2024, 3, 5, 14, 7, 9)


@pytest.fixture
def project(tmp_path):
    dist = tmp_path / "dist"
    dist.mkdir()
    return tmp_path, dist


def _resolver(project, environ=None):
    work_dir, dist = project
    return VersionResolver(work_dir=work_dir, project_path=dist, environ=environ or {}, now=lambda: FIXED_NOW)


@pytest.mark.parametrize(
    "tag,expected",
    [
        ("v1.2.3", "1.2.3"),
        ("1.2.3", "1.2.3"),
        ("v2.0.0-beta.1", "2.0.0-beta.1"),
        ("release-1", None),
        ("v1.2", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_tag_version(tag, expected):
    assert parse_tag_version(tag) == expected


def test_env_label():
    assert env_label("production") == "Release"
    assert env_label("development") == "Trial"
    assert env_label("staging") == "Trial"


def test_default_version(project):
    assert _resolver(project).resolve_version() == "1.0.0"


def test_package_json_version(project):
    work_dir, _ = project
    (work_dir / "package.json").write_text(json.dumps({"version": "3.1.4"}), encoding="utf-8")
    assert _resolver(project).resolve_version() == "3.1.4"


def test_tag_beats_package_json(project):
    work_dir, _ = project
    (work_dir / "package.json").write_text(json.dumps({"version": "3.1.4"}), encoding="utf-8")
    assert _resolver(project, {"CI_COMMIT_TAG": "v4.0.0"}).resolve_version() == "4.0.0"
    assert _resolver(project, {"GIT_TAG": "4.0.1"}).resolve_version() == "4.0.1"


def test_invalid_tag_ignored(project):
    work_dir, _ = project
    (work_dir / "package.json").write_text(json.dumps({"version": "3.1.4"}), encoding="utf-8")
    assert _resolver(project, {"CI_COMMIT_TAG": "nightly"}).resolve_version() == "3.1.4"


def test_build_info_beats_tag(project):
    _, dist = project
    (dist / "build-info.json").write_text(
        json.dumps({"version": "5.0.0", "description": "from build"}), encoding="utf-8"
    )
    resolver = _resolver(project, {"CI_COMMIT_TAG": "v4.0.0"})
    assert resolver.resolve_version() == "5.0.0"
    assert resolver.resolve_description("development") == "from build"


def test_explicit_wins(project):
    _, dist = project
    (dist / "build-info.json").write_text(json.dumps({"version": "5.0.0"}), encoding="utf-8")
    resolver = _resolver(project, {"CI_COMMIT_TAG": "v4.0.0"})
    assert resolver.resolve_version("9.9.9") == "9.9.9"
    assert resolver.resolve_description("production", "hotfix") == "hotfix"


def test_unreadable_build_info_ignored(project):
    _, dist = project
    (dist / "build-info.json").write_text("{broken", encoding="utf-8")
    assert _resolver(project).resolve_version() == "1.0.0"


def test_generated_description(project):
    resolver = _resolver(project)
    assert resolver.resolve_description("development") == "Trial upload - 2024/03/05 14:07:09"
    assert resolver.resolve_description("production") == "Release upload - 2024/03/05 14:07:09"


def test_generated_description_with_git_context(project):
    environ = {"GIT_BRANCH": "main", "GIT_COMMIT": "abcdef1234567890"}
    assert (
        _resolver(project, environ).generate_description("staging")
        == "Trial upload - 2024/03/05 14:07:09 [main] (abcdef1)"
    )


def test_build_info_snapshot(project):
    environ = {"CI_COMMIT_REF_NAME": "develop", "CI_COMMIT_SHA": "123456789", "BUILD_NUMBER": "42"}
    info = _resolver(project, environ).build_info()

    assert info["version"] == "1.0.0"
    assert info["branch"] == "develop"
    assert info["commit"] == "123456789"
    assert info["build_number"] == "42"
    assert info["env"] == "development"
    assert "Build number: 42" in _resolver(project, environ).report()

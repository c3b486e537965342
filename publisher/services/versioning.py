"""
Version Service - resolve the version and description a run publishes under.

Version precedence: explicit > build-info.json > CI tag > package.json > 1.0.0
Description precedence: explicit > build-info.json > generated from env + git
"""
import json
import logging
import os
import platform
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"
BUILD_INFO_FILE = "build-info.json"
PACKAGE_FILE = "package.json"

_SEMVER_PREFIX = re.compile(r"^\d+\.\d+\.\d+")

TAG_ENV = ("CI_COMMIT_TAG", "GIT_TAG")
BRANCH_ENV = ("GIT_BRANCH", "CI_COMMIT_REF_NAME")
COMMIT_ENV = ("GIT_COMMIT", "CI_COMMIT_SHA")
BUILD_NUMBER_ENV = ("BUILD_NUMBER", "CI_PIPELINE_ID")


def parse_tag_version(tag: Optional[str]) -> Optional[str]:
    """``v1.2.3`` -> ``1.2.3``; None when the tag is not a version."""
    if not tag:
        return None
    version = tag[1:] if tag.startswith("v") else tag
    if _SEMVER_PREFIX.match(version):
        return version
    return None


def env_label(env: str) -> str:
    return "Release" if env == "production" else "Trial"


class VersionResolver:
    """Resolves version/description from explicit input, CI env and project files."""

    def __init__(
        self,
        work_dir: Optional[Path] = None,
        project_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            work_dir: Directory holding package.json (default: cwd)
            project_path: Built project directory holding build-info.json
            environ: Environment mapping (default: os.environ)
            now: Clock used for description timestamps
        """
        self._work_dir = Path(work_dir) if work_dir else Path.cwd()
        self._project_path = Path(project_path) if project_path else None
        self._environ = environ if environ is not None else os.environ
        self._now = now
        self._build_info: Optional[Dict[str, Any]] = None

    def _env(self, names: Tuple[str, ...]) -> Optional[str]:
        for name in names:
            value = self._environ.get(name)
            if value:
                return value
        return None

    def read_build_info(self) -> Dict[str, Any]:
        """Contents of build-info.json in the project path, or {}."""
        if self._build_info is not None:
            return self._build_info
        self._build_info = {}
        if self._project_path is None:
            return self._build_info

        path = self._project_path / BUILD_INFO_FILE
        if not path.exists():
            return self._build_info
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.debug("Could not read %s: %s", path, e)
            return self._build_info
        if isinstance(data, dict):
            self._build_info = data
            logger.debug("Loaded build info from %s", path)
        return self._build_info

    def declared_version(self) -> str:
        """Version declared in package.json, or the default."""
        path = self._work_dir / PACKAGE_FILE
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return DEFAULT_VERSION
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s: %s", path, e)
            return DEFAULT_VERSION
        version = data.get("version") if isinstance(data, dict) else None
        return str(version) if version else DEFAULT_VERSION

    def tag_version(self) -> Optional[str]:
        tag = self._env(TAG_ENV)
        version = parse_tag_version(tag)
        if tag and version is None:
            logger.debug("Ignoring tag %r: not a MAJOR.MINOR.PATCH version", tag)
        return version

    def resolve_version(self, explicit: Optional[str] = None) -> str:
        if explicit:
            return explicit
        from_build = self.read_build_info().get("version")
        if from_build:
            logger.info(f"Version from {BUILD_INFO_FILE}: {from_build}")
            return str(from_build)
        return self.tag_version() or self.declared_version()

    def resolve_description(self, env: str, explicit: Optional[str] = None) -> str:
        if explicit:
            return explicit
        from_build = self.read_build_info().get("description")
        if from_build:
            logger.info(f"Description from {BUILD_INFO_FILE}: {from_build}")
            return str(from_build)
        return self.generate_description(env)

    def generate_description(self, env: str) -> str:
        """``<label> upload - YYYY/MM/DD HH:MM:SS [branch] (sha7)``"""
        timestamp = self._now().strftime("%Y/%m/%d %H:%M:%S")
        description = f"{env_label(env)} upload - {timestamp}"

        branch = self._env(BRANCH_ENV)
        if branch:
            description += f" [{branch}]"
        commit = self._env(COMMIT_ENV)
        if commit:
            description += f" ({commit[:7]})"
        return description

    def build_info(self) -> Dict[str, Any]:
        """Build environment snapshot stored with history records."""
        return {
            "version": self.declared_version(),
            "build_time": datetime.now(timezone.utc).isoformat(),
            "env": self._environ.get("PUBLISH_ENV") or "development",
            "branch": self._env(BRANCH_ENV) or "unknown",
            "commit": self._env(COMMIT_ENV) or "unknown",
            "build_number": self._env(BUILD_NUMBER_ENV) or "local",
            "python": platform.python_version(),
            "platform": sys.platform,
        }

    def report(self) -> str:
        """Human-readable build information report."""
        info = self.build_info()
        lines = [
            "=" * 60,
            "Build information",
            "=" * 60,
            f"Version:      {info['version']}",
            f"Build time:   {info['build_time']}",
            f"Environment:  {info['env']}",
            f"Branch:       {info['branch']}",
            f"Commit:       {info['commit']}",
            f"Build number: {info['build_number']}",
            f"Python:       {info['python']}",
            f"Platform:     {info['platform']}",
            "=" * 60,
        ]
        return "\n".join(lines)

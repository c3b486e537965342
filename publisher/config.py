"""Per-environment publish configuration."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ConfigurationError
from .models import PublishTarget
from .services.object_storage import StorageConfig

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILE = "project.config.json"
DEFAULT_PROJECT_PATH = "./dist"
DEFAULT_IGNORES: Tuple[str, ...] = (
    "node_modules/**/*",
    "**/.DS_Store",
    "**/*.map",
    "**/*.log",
    "**/test/**",
    "**/tests/**",
    "**/*.test.*",
    "**/*.spec.*",
)

COMPILE_SETTINGS: Dict[str, bool] = {
    "es6": True,
    "minifyJS": True,
    "minifyWXML": True,
    "minifyWXSS": True,
    "minify": True,
    "codeProtect": False,
    "autoPrefixWXSS": False,
}

ENVIRONMENTS: Dict[str, Dict[str, Any]] = {
    "development": {"robot": 1, "qrcode_output": "./preview-qrcode-dev.jpg"},
    "staging": {"robot": 2, "qrcode_output": "./preview-qrcode-staging.jpg"},
    "production": {"robot": 3, "qrcode_output": "./preview-qrcode-prod.jpg"},
}

STORAGE_ENV_OVERRIDES = {
    "endpoint": "OSS_ENDPOINT",
    "bucket": "OSS_BUCKET",
    "cdn_domain": "OSS_CDN_DOMAIN",
    "signature_route": "OSS_SIGNATURE_ROUTE",
    "cookie": "API_COOKIE",
}


@dataclass(frozen=True)
class PublishConfig:
    """Immutable configuration for one publish run."""
    env: str
    target: PublishTarget
    robot: int
    storage: StorageConfig
    settings: Dict[str, Any] = field(default_factory=lambda: dict(COMPILE_SETTINGS))
    qrcode_format: str = "image"
    qrcode_output: Path = Path("./preview-qrcode-dev.jpg")


def resolve_app_id(work_dir: Path, environ: Mapping[str, str]) -> str:
    """MP_APPID, else ``appid`` from project.config.json."""
    app_id = environ.get("MP_APPID")
    if app_id:
        return app_id

    project_config = Path(work_dir) / PROJECT_CONFIG_FILE
    if project_config.exists():
        try:
            data = json.loads(project_config.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read {project_config}: {e}") from e
        if isinstance(data, dict) and data.get("appid"):
            return str(data["appid"])

    raise ConfigurationError(f"No app id: set MP_APPID or add 'appid' to {PROJECT_CONFIG_FILE}")


def load_config(
    env: str = "development",
    work_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    robot: Optional[int] = None,
    storage_preset: Optional[str] = None,
    cookie: Optional[str] = None,
    project_path: Optional[Path] = None,
) -> PublishConfig:
    """Merge the shared settings with the named environment."""
    if env not in ENVIRONMENTS:
        raise ConfigurationError(
            f"Unknown environment {env!r} (expected one of: {', '.join(ENVIRONMENTS)})"
        )
    work_dir = Path(work_dir) if work_dir else Path.cwd()
    environ = environ if environ is not None else os.environ
    env_config = ENVIRONMENTS[env]

    target = PublishTarget(
        app_id=resolve_app_id(work_dir, environ),
        project_path=(work_dir / (project_path or DEFAULT_PROJECT_PATH)).resolve(),
        ignores=DEFAULT_IGNORES,
    )

    overrides = {key: environ.get(name) for key, name in STORAGE_ENV_OVERRIDES.items()}
    storage = StorageConfig.from_preset(
        storage_preset or environ.get("OSS_PRESET"),
        **overrides,
    ).with_cookie(cookie)

    return PublishConfig(
        env=env,
        target=target,
        robot=int(robot) if robot else env_config["robot"],
        storage=storage,
        qrcode_output=Path(env_config["qrcode_output"]),
    )

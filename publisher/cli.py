"""Command line interface for publisher package."""
from __future__ import annotations

import argparse
import asyncio
import importlib
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from .cli_progress import (
    ProgressDisplay,
    print_cdn_url,
    render_configuration_summary,
    render_result,
)
from .config import ENVIRONMENTS, PublishConfig, load_config
from .errors import ConfigurationError
from .models import ACTIONS
from .orchestrator import PublishOrchestrator, PublishRequest, RunStatus
from .services.versioning import VersionResolver


PLATFORM_ENV = "PUBLISH_PLATFORM"
DEFAULT_ENV_FILE = ".env"


class CLIError(RuntimeError):
    """Bad command line input, env file or platform spec."""


def _setup_logging(
    debug: bool,
    silent: bool,
    log_level: Optional[str],
    log_file: Optional[Path] = None,
) -> str:
    """
    Configure logging.

    Level comes from --debug, then --log-level, then LOG_LEVEL (default INFO).
    --silent disables logging entirely. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent:
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        env_level = os.getenv("LOG_LEVEL")
        level = getattr(logging, (env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root_logger.addHandler(file_handler)

    root_logger.setLevel(level)
    # httpx logs every request at INFO, including signed URLs
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _unquote(value: str) -> str:
    """Strip one pair of matching surrounding quotes."""
    if len(value) >= 2 and value[0] in "'\"" and value.endswith(value[0]):
        return value[1:-1]
    return value


def _parse_env_line(raw_line: str) -> Optional[Tuple[str, str]]:
    """``KEY=VALUE`` (optionally ``export``-prefixed) or None for comments and noise."""
    line = raw_line.strip()
    if not line or line.startswith("#"):
        return None
    line = line.removeprefix("export ").strip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None
    return key, _unquote(value.strip())


def _load_env_file(path: Path) -> List[str]:
    """
    Export the pairs in a dotenv file.

    Variables already present in the environment win over the file.
    Returns the names that were applied.
    """
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    applied: List[str] = []
    for raw_line in lines:
        pair = _parse_env_line(raw_line)
        if pair is None:
            continue
        key, value = pair
        if key in os.environ:
            continue
        os.environ[key] = value
        applied.append(key)
    return applied


def _default_env_file(cwd: Optional[Path] = None) -> Optional[Path]:
    candidate = (cwd or Path.cwd()) / DEFAULT_ENV_FILE
    return candidate if candidate.is_file() else None


def _load_platform(spec: Optional[str], config: PublishConfig):
    """
    Build the distribution platform from ``package.module:factory``.

    The factory is called with the PublishConfig; a non-callable attribute is
    used as the platform itself.
    """
    if not spec:
        raise CLIError(f"no distribution platform configured (use --platform or {PLATFORM_ENV})")
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise CLIError(f"invalid platform spec {spec!r}, expected 'package.module:factory'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise CLIError(f"cannot import platform module {module_name!r}: {exc}") from exc

    factory = getattr(module, attr, None)
    if factory is None:
        raise CLIError(f"platform module {module_name!r} has no attribute {attr!r}")
    return factory(config) if callable(factory) else factory


async def _run_publish(
    action: str,
    config: PublishConfig,
    platform,
    request: PublishRequest,
) -> int:
    display = ProgressDisplay()
    async with PublishOrchestrator(config, platform, request) as orchestrator:
        consumer = asyncio.create_task(display.consume(orchestrator.progress))
        try:
            result = await orchestrator.execute(action)
        finally:
            await consumer

    render_result(result)
    if result.status == RunStatus.FAILED:
        return 1
    print_cdn_url(result.qrcode_url)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mp-publish",
        description="Release a mini-program build and publish its preview QR code to the CDN.",
    )
    parser.add_argument(
        "--env",
        default="development",
        help=f"Target environment ({'/'.join(ENVIRONMENTS)}) [default: development]",
    )
    parser.add_argument(
        "--action",
        default="release",
        help=f"Action to run ({'/'.join(ACTIONS)}) [default: release]",
    )
    parser.add_argument("--version", default=None, help="Version to publish (default: tag or package.json)")
    parser.add_argument("--desc", default=None, help="Version description")
    parser.add_argument("--qrcode", type=Path, default=None, help="Preview QR code output path")
    parser.add_argument(
        "--no-upload-oss",
        dest="upload_oss",
        action="store_false",
        help="Keep the QR code local instead of uploading it to the CDN",
    )
    parser.add_argument("--cookie", default=None, help="API cookie for the signature endpoint (default: API_COOKIE)")
    parser.add_argument("--robot", type=int, default=None, help="CI robot number (overrides the environment default)")
    parser.add_argument("--private-key", type=Path, default=None, help="Private key file (default: from environment)")
    parser.add_argument("--oss-preset", default=None, help="Object-storage preset (default: OSS_PRESET or aicontest)")
    parser.add_argument(
        "--platform",
        default=None,
        help=f"Distribution platform factory 'package.module:factory' (default: {PLATFORM_ENV})",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Disable logs")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file (default: LOG_FILE)",
    )
    parser.add_argument(
        "--show-version",
        action="store_true",
        help="Print build information and exit",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _default_env_file()
    env_vars: List[str] = []
    if used_env_file is not None:
        try:
            env_vars = _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    if args.show_version:
        print(VersionResolver().report())
        return 0

    log_file = args.log_file or (Path(os.environ["LOG_FILE"]) if os.getenv("LOG_FILE") else None)
    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
        log_file=log_file,
    )

    try:
        config = load_config(
            env=args.env,
            robot=args.robot,
            storage_preset=args.oss_preset,
            cookie=args.cookie,
        )
        platform = _load_platform(args.platform or os.getenv(PLATFORM_ENV), config)
    except (ConfigurationError, CLIError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    request = PublishRequest(
        version=args.version,
        description=args.desc,
        qrcode_output=args.qrcode,
        upload_to_storage=args.upload_oss,
        private_key_path=args.private_key,
    )

    render_configuration_summary(
        {
            "Action": args.action,
            "Environment": config.env,
            "App ID": config.target.app_id,
            "Project": str(config.target.project_path),
            "Robot": config.robot,
            "QR Code": str(args.qrcode or config.qrcode_output),
            "Upload To CDN": "yes" if args.upload_oss else "no",
            "Storage Preset": config.storage.preset,
            "CDN Domain": config.storage.cdn_domain,
            "Env File": f"{used_env_file} ({len(env_vars)} vars)" if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_publish(args.action, config, platform, request))
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()

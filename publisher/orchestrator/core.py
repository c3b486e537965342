"""Core orchestrator - coordinates one publish run."""
import asyncio
import logging
import shutil
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union

import httpx

from ..config import PublishConfig
from ..errors import PlatformOperationError, PublishError, UnsupportedAction, _describe_exception
from ..models import (
    ACTIONS,
    PREVIEW,
    RELEASE,
    HistoryRecord,
    OperationResult,
    ProgressUpdate,
    PublishTarget,
)
from ..protocols import IDistributionPlatform, IObjectUploader
from ..services.credentials import CredentialManager
from ..services.history import PublishHistory
from ..services.object_storage import ObjectStorageUploader
from ..services.versioning import VersionResolver
from ..utils.events import ProgressChannel

from .models import PublishRequest, PublishResult, RunState, RunStatus
from .preview_handler import PreviewHandler

logger = logging.getLogger(__name__)

SCRATCH_DIR = ".temp"


class PublishOrchestrator:
    """
    Runs one release or preview end to end using injected services.

    Flow:
    1. Resolve version and description
    2. Resolve the signing key (always cleaned up at the end)
    3. Run release and preview concurrently, or preview alone
    4. Push the preview QR code to the CDN (failure only degrades the run)
    5. Append history records

    Usage:
        async with PublishOrchestrator(config, platform, request) as orchestrator:
            result = await orchestrator.execute("release")

    One instance serves one run.
    """

    def __init__(
        self,
        config: PublishConfig,
        platform: IDistributionPlatform,
        request: Optional[PublishRequest] = None,
        uploader: Optional[IObjectUploader] = None,
        credentials: Optional[CredentialManager] = None,
        history: Optional[PublishHistory] = None,
        versions: Optional[VersionResolver] = None,
        work_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Environment configuration (target, robot, storage)
            platform: Distribution platform adapter
            request: Caller input (version, description, flags)
            uploader: Object-storage uploader (default: built from config.storage)
            credentials: Credential manager (default: built from config.target)
            history: History stores (default: in work_dir)
            versions: Version resolver (default: reads work_dir and project path)
            work_dir: Working directory for key, marker and history files (default: cwd)
            environ: Environment mapping for default services
        """
        self._config = config
        self._platform = platform
        self._request = request or PublishRequest()
        self._work_dir = Path(work_dir) if work_dir else Path.cwd()

        self._external_uploader = uploader
        self._uploader: IObjectUploader = uploader or ObjectStorageUploader(config.storage)
        self._credentials = credentials or CredentialManager(
            config.target.app_id, work_dir=self._work_dir, environ=environ
        )
        self._history = history or PublishHistory(self._work_dir)
        self._versions = versions or VersionResolver(
            work_dir=self._work_dir,
            project_path=config.target.project_path,
            environ=environ,
        )

        self._client: Optional[httpx.AsyncClient] = None
        self.progress = ProgressChannel()
        self._state = RunState.INIT
        self._failed = False
        self._executed = False

    async def __aenter__(self):
        """Share one HTTP client across the run's uploads."""
        if self._external_uploader is None:
            self._client = httpx.AsyncClient()
            self._uploader = ObjectStorageUploader(self._config.storage, client=self._client)
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def scratch_dir(self) -> Path:
        return self._work_dir / SCRATCH_DIR

    def _transition(self, state: RunState) -> None:
        logger.debug(f"Run state: {self._state.value} -> {state.value}")
        self._state = state

    def _qrcode_output(self) -> Path:
        path = Path(self._request.qrcode_output or self._config.qrcode_output)
        return path if path.is_absolute() else (self._work_dir / path).resolve()

    async def execute(self, action: str) -> PublishResult:
        """
        Run ``release`` (release + preview) or ``preview``.

        Never raises for run failures: they come back as a FAILED result
        carrying the exception. Version and description are echoed in every
        result that got far enough to resolve them.
        """
        if self._executed:
            raise RuntimeError("PublishOrchestrator.execute() may only be called once")
        self._executed = True

        started = time.monotonic()
        version: Optional[str] = None
        description: Optional[str] = None
        qrcode_output: Optional[Path] = None

        logger.info(f"Starting {action} ({self._config.env})")
        try:
            version = self._versions.resolve_version(self._request.version)
            description = self._versions.resolve_description(self._config.env, self._request.description)
            if action not in ACTIONS:
                raise UnsupportedAction(action)

            qrcode_output = self._qrcode_output()
            logger.info(f"Version: {version}")
            logger.info(f"Description: {description}")
            logger.info(f"Robot: {self._config.robot}")

            async with self._credentials.acquire(self._request.private_key_path) as key_path:
                self._transition(RunState.CREDENTIAL_RESOLVED)
                target = self._config.target.with_credential(key_path)
                self._transition(RunState.TARGET_INITIALIZED)
                logger.info(f"Project initialized: {target.app_id} ({target.project_path})")

                self._transition(RunState.OPERATIONS_RUNNING)
                if action == RELEASE:
                    release, preview = await self._run_release_and_preview(
                        target, version, description, qrcode_output
                    )
                else:
                    release = None
                    preview = await self._run_preview(target, description, qrcode_output)

                local_qrcode = preview.preview_path or qrcode_output
                qrcode_url, warnings = await self._deliver_preview(local_qrcode)
                self._transition(RunState.RESULTS_AGGREGATED)

                package_info = (release or preview).package_info
                self._persist_history(
                    action, version, description, release, preview, qrcode_url, local_qrcode
                )
                self._transition(RunState.HISTORY_PERSISTED)

            status = RunStatus.DEGRADED if warnings else RunStatus.SUCCESS
            duration = time.monotonic() - started
            logger.info(f"{action} finished ({status.value}) in {duration:.1f}s")
            return PublishResult(
                status=status,
                action=action,
                version=version,
                description=description,
                qrcode_url=qrcode_url,
                local_qrcode_path=local_qrcode,
                package_info=package_info,
                warnings=tuple(warnings),
                duration=duration,
            )
        except Exception as e:
            self._failed = True
            duration = time.monotonic() - started
            if isinstance(e, PublishError):
                logger.error(f"{action} failed: {e}")
            else:
                logger.error(f"{action} failed: {_describe_exception(e)}", exc_info=True)
            logger.error(f"Elapsed: {duration:.1f}s")
            return PublishResult(
                status=RunStatus.FAILED,
                action=action,
                version=version,
                description=description,
                local_qrcode_path=qrcode_output,
                error=_describe_exception(e),
                error_type=type(e).__name__,
                duration=duration,
                exception=e,
            )
        finally:
            self._remove_scratch_dir()
            self._transition(RunState.CREDENTIAL_CLEANED)
            self.progress.close()

    def _progress_callback(self, kind: str) -> Callable[[Any], None]:
        def on_progress(update: Union[ProgressUpdate, Mapping[str, Any]]) -> None:
            if isinstance(update, Mapping):
                update = ProgressUpdate(
                    percent=float(update.get("percent") or 0.0),
                    message=str(update.get("message") or ""),
                )
            event = self.progress.emit(kind, update)
            if event is not None:
                logger.debug(str(event))

        return on_progress

    async def _run_operation(self, kind: str, call: Awaitable[OperationResult]) -> OperationResult:
        logger.info(f"[{kind}] started")
        try:
            result = await call
        except PublishError:
            raise
        except Exception as e:
            raise PlatformOperationError(kind, e) from e
        logger.info(f"[{kind}] succeeded")
        return result if result is not None else OperationResult(kind=kind)

    def _release_call(self, target: PublishTarget, version: str, description: str):
        return self._platform.release(
            target,
            version,
            description,
            dict(self._config.settings),
            self._config.robot,
            self._progress_callback(RELEASE),
        )

    def _preview_call(self, target: PublishTarget, description: str, qrcode_output: Path):
        return self._platform.preview(
            target,
            description,
            dict(self._config.settings),
            self._config.robot,
            self._config.qrcode_format,
            qrcode_output,
            self._progress_callback(PREVIEW),
        )

    async def _run_preview(
        self, target: PublishTarget, description: str, qrcode_output: Path
    ) -> OperationResult:
        return await self._run_operation(PREVIEW, self._preview_call(target, description, qrcode_output))

    async def _run_release_and_preview(
        self,
        target: PublishTarget,
        version: str,
        description: str,
        qrcode_output: Path,
    ) -> Tuple[OperationResult, OperationResult]:
        """Start both calls, wait for both, then fail if either failed."""
        release_task = asyncio.create_task(
            self._run_operation(RELEASE, self._release_call(target, version, description))
        )
        preview_task = asyncio.create_task(
            self._run_operation(PREVIEW, self._preview_call(target, description, qrcode_output))
        )

        # No cancellation: an in-flight upload is left to finish before failing
        release, preview = await asyncio.gather(release_task, preview_task, return_exceptions=True)
        for outcome in (release, preview):
            if isinstance(outcome, BaseException):
                raise outcome
        return release, preview

    async def _deliver_preview(self, local_qrcode: Path) -> Tuple[Optional[str], List[str]]:
        if not self._request.upload_to_storage:
            logger.info("Storage upload disabled, QR code kept locally")
            return None, []

        handler = PreviewHandler(self._uploader, self._work_dir)
        url, warning = await handler.deliver(local_qrcode)
        return url, [warning] if warning else []

    def _persist_history(
        self,
        action: str,
        version: str,
        description: str,
        release: Optional[OperationResult],
        preview: OperationResult,
        qrcode_url: Optional[str],
        local_qrcode: Path,
    ) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        build_info = self._versions.build_info()

        if action == RELEASE and release is not None:
            self._save_record(
                self._history.record_release,
                HistoryRecord(
                    kind=RELEASE,
                    version=version,
                    description=description,
                    env=self._config.env,
                    robot=self._config.robot,
                    timestamp=timestamp,
                    package_info=release.package_info,
                    qrcode_url=qrcode_url,
                    build_info=build_info,
                ),
            )

        if qrcode_url:
            self._save_record(
                self._history.record_preview,
                HistoryRecord(
                    kind=PREVIEW,
                    version=version,
                    description=description,
                    env=self._config.env,
                    robot=self._config.robot,
                    timestamp=timestamp,
                    package_info=preview.package_info,
                    qrcode_url=qrcode_url,
                    local_qrcode_path=str(local_qrcode),
                    build_info=build_info,
                ),
            )

    def _save_record(self, writer: Callable[[HistoryRecord], None], record: HistoryRecord) -> None:
        try:
            writer(record)
        except OSError as e:
            logger.warning(f"[history] Failed to save {record.kind} record: {e}")

    def _remove_scratch_dir(self) -> None:
        if not self.scratch_dir.exists():
            return
        try:
            shutil.rmtree(self.scratch_dir)
            logger.debug("Scratch directory removed")
        except OSError as e:
            logger.warning(f"Failed to remove scratch directory {self.scratch_dir}: {e}")

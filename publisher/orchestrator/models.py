"""Orchestrator data models."""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from ..models import PackageSize


class RunStatus(Enum):
    """Terminal status of a publish run."""
    SUCCESS = "success"
    DEGRADED = "degraded"  # Published, but the QR code stayed local
    FAILED = "failed"


class RunState(Enum):
    """Run lifecycle; every path ends in CREDENTIAL_CLEANED."""
    INIT = "init"
    CREDENTIAL_RESOLVED = "credential_resolved"
    TARGET_INITIALIZED = "target_initialized"
    OPERATIONS_RUNNING = "operations_running"
    RESULTS_AGGREGATED = "results_aggregated"
    HISTORY_PERSISTED = "history_persisted"
    CREDENTIAL_CLEANED = "credential_cleaned"


@dataclass(frozen=True)
class PublishRequest:
    """Caller input for one run."""
    version: Optional[str] = None
    description: Optional[str] = None
    qrcode_output: Optional[Path] = None
    upload_to_storage: bool = True
    private_key_path: Optional[Path] = None


@dataclass(frozen=True)
class PublishResult:
    """Outcome of ``PublishOrchestrator.execute``."""
    status: RunStatus
    action: str
    version: Optional[str] = None
    description: Optional[str] = None
    qrcode_url: Optional[str] = None
    local_qrcode_path: Optional[Path] = None
    package_info: Tuple[PackageSize, ...] = ()
    warnings: Tuple[str, ...] = ()
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration: float = 0.0
    exception: Optional[BaseException] = field(default=None, compare=False, repr=False)

    @property
    def success(self) -> bool:
        return self.status != RunStatus.FAILED

    @property
    def degraded(self) -> bool:
        return self.status == RunStatus.DEGRADED

    def raise_for_status(self) -> None:
        """Re-raise the failure captured by a FAILED run."""
        if self.status == RunStatus.FAILED and self.exception is not None:
            raise self.exception

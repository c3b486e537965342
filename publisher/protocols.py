"""
Protocols (Interfaces) for Dependency Inversion.

The distribution platform is opaque: the orchestrator only knows these two
calls and the progress callback they accept.
"""
from pathlib import Path
from typing import Any, Callable, Dict, Protocol, runtime_checkable

from .models import OperationResult, ProgressUpdate, PublishTarget, StorageUploadResult


ProgressCallback = Callable[[ProgressUpdate], None]


@runtime_checkable
class IDistributionPlatform(Protocol):
    """Interface for the application-distribution platform."""

    async def release(
        self,
        target: PublishTarget,
        version: str,
        description: str,
        settings: Dict[str, Any],
        robot: int,
        on_progress: ProgressCallback,
    ) -> OperationResult:
        """Upload a new code version."""
        ...

    async def preview(
        self,
        target: PublishTarget,
        description: str,
        settings: Dict[str, Any],
        robot: int,
        qrcode_format: str,
        qrcode_output: Path,
        on_progress: ProgressCallback,
    ) -> OperationResult:
        """Build a preview and write its QR code to ``qrcode_output``."""
        ...


@runtime_checkable
class IObjectUploader(Protocol):
    """Interface for single-file object-storage upload."""

    async def upload(self, path: Path, pure_name: bool = False) -> StorageUploadResult:
        """Upload file, never raising."""
        ...

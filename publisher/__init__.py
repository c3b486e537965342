"""
Publisher - release orchestration for mini-program builds.

Runs a release and a preview against the distribution platform at the same
time, pushes the preview QR code to the CDN, and keeps release/preview
history next to the project.

Usage:
    from publisher import PublishOrchestrator, PublishRequest, load_config

    config = load_config("development")
    request = PublishRequest(version="1.2.0", description="new release")

    async with PublishOrchestrator(config, platform, request) as orchestrator:
        result = await orchestrator.execute("release")

    if result.qrcode_url:
        print(result.qrcode_url)
"""
from .config import PublishConfig, load_config
from .errors import (
    ConfigurationError,
    CredentialError,
    CredentialFetchError,
    CredentialSourceMissing,
    InvalidCredentialFormat,
    PlatformOperationError,
    PublishError,
    SignatureRequestFailed,
    StorageError,
    UnsupportedAction,
    UploadFailed,
)
from .models import (
    HistoryRecord,
    OperationResult,
    PackageSize,
    ProgressUpdate,
    PublishTarget,
    StorageUploadResult,
)
from .orchestrator import PublishOrchestrator, PublishRequest, PublishResult, RunState, RunStatus
from .services import (
    CredentialManager,
    HistoryStore,
    ObjectStorageUploader,
    PublishHistory,
    StorageConfig,
    VersionResolver,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "PublishOrchestrator",
    "PublishRequest",
    "PublishResult",
    "RunState",
    "RunStatus",
    # Config
    "PublishConfig",
    "load_config",
    # Models
    "HistoryRecord",
    "OperationResult",
    "PackageSize",
    "ProgressUpdate",
    "PublishTarget",
    "StorageUploadResult",
    # Services
    "CredentialManager",
    "HistoryStore",
    "ObjectStorageUploader",
    "PublishHistory",
    "StorageConfig",
    "VersionResolver",
    # Errors
    "PublishError",
    "ConfigurationError",
    "CredentialError",
    "CredentialSourceMissing",
    "CredentialFetchError",
    "InvalidCredentialFormat",
    "StorageError",
    "SignatureRequestFailed",
    "UploadFailed",
    "UnsupportedAction",
    "PlatformOperationError",
]

"""
Models for publisher module.

Immutable dataclasses shared by the credential, storage, history and
orchestration layers.
"""
from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any, Tuple, List
from pathlib import Path
from enum import Enum


RELEASE = "release"
PREVIEW = "preview"
ACTIONS = (RELEASE, PREVIEW)


class CredentialSource(Enum):
    """Where the signing key came from."""
    EXPLICIT = "explicit"
    REMOTE_URL = "remote_url"
    INLINE_BASE64 = "inline_base64"
    COPIED = "copied"


@dataclass(frozen=True)
class Credential:
    """A resolved signing key on disk."""
    path: Path
    source: CredentialSource

    @property
    def owned(self) -> bool:
        """True when this process wrote the file and must delete it."""
        return self.source != CredentialSource.EXPLICIT


@dataclass(frozen=True)
class PublishTarget:
    """Destination application and the project packaged for it."""
    app_id: str
    project_path: Path
    ignores: Tuple[str, ...] = ()
    project_type: str = "miniProgram"
    private_key_path: Optional[Path] = None

    def with_credential(self, key_path: Path) -> "PublishTarget":
        return replace(self, private_key_path=Path(key_path))


@dataclass(frozen=True)
class PackageSize:
    """Size of one sub-package reported by the platform."""
    name: str
    size: int

    @property
    def label(self) -> str:
        if self.name == "__FULL__":
            return "full package"
        if self.name == "__APP__":
            return "main package"
        return self.name

    @property
    def size_kb(self) -> float:
        return self.size / 1024

    @property
    def size_mb(self) -> float:
        return self.size / 1024 / 1024

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "size": self.size}


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a release or preview call."""
    kind: str
    package_info: Tuple[PackageSize, ...] = ()
    preview_path: Optional[Path] = None

    @classmethod
    def from_sizes(cls, kind: str, sizes: List[Dict[str, Any]], preview_path: Optional[Path] = None):
        """Build from the platform's raw ``[{name, size}]`` list."""
        package_info = tuple(
            PackageSize(name=str(item.get("name", "")), size=int(item.get("size", 0)))
            for item in sizes or []
        )
        return cls(kind=kind, package_info=package_info, preview_path=preview_path)


@dataclass(frozen=True)
class ProgressUpdate:
    """One progress report from a remote operation."""
    percent: float = 0.0
    message: str = ""


@dataclass(frozen=True)
class StorageUploadResult:
    """Result of a single object-storage upload."""
    success: bool
    url: Optional[str] = None
    object_key: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, url: str, object_key: str):
        return cls(success=True, url=url, object_key=object_key)

    @classmethod
    def fail(cls, error: str):
        return cls(success=False, error=error)


@dataclass
class BatchUploadResult:
    """Result of a sequential batch upload."""
    results: List[Tuple[Path, StorageUploadResult]] = field(default_factory=list)
    success_urls: List[str] = field(default_factory=list)
    errors: List[Tuple[Path, str]] = field(default_factory=list)

    @property
    def all_success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class HistoryRecord:
    """Audit entry for one completed release or preview."""
    kind: str
    version: str
    description: str
    env: str
    robot: int
    timestamp: str
    package_info: Tuple[PackageSize, ...] = ()
    qrcode_url: Optional[str] = None
    local_qrcode_path: Optional[str] = None
    build_info: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind,
            "version": self.version,
            "description": self.description,
            "env": self.env,
            "robot": self.robot,
            "timestamp": self.timestamp,
            "package_info": [pkg.to_dict() for pkg in self.package_info],
            "build_info": dict(self.build_info),
        }
        if self.qrcode_url:
            data["qrcode_url"] = self.qrcode_url
        if self.local_qrcode_path:
            data["local_qrcode_path"] = self.local_qrcode_path
        return data

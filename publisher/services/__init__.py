"""Services for publisher module."""
from .credentials import CredentialManager
from .history import HistoryStore, PublishHistory
from .object_storage import ObjectStorageUploader, StorageConfig
from .versioning import VersionResolver

__all__ = [
    "CredentialManager",
    "HistoryStore",
    "PublishHistory",
    "ObjectStorageUploader",
    "StorageConfig",
    "VersionResolver",
]

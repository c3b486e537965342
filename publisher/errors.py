"""Exception taxonomy for publish runs."""
from typing import Optional


class PublishError(RuntimeError):
    """Base class for all publish failures."""


class ConfigurationError(PublishError):
    """Invalid or incomplete publish configuration."""


class UnsupportedAction(PublishError):
    """Requested action is neither release nor preview."""

    def __init__(self, action: str):
        super().__init__(f"Unsupported action: {action!r} (expected 'release' or 'preview')")
        self.action = action


class CredentialError(PublishError):
    """Signing credential could not be produced. Always fatal."""


class CredentialSourceMissing(CredentialError):
    """No credential source is configured."""


class CredentialFetchError(CredentialError):
    """Downloading the credential failed."""


class InvalidCredentialFormat(CredentialError):
    """Credential content is not a PEM private key."""


class StorageError(PublishError):
    """Object-storage upload failure. Never fatal for a run."""


class SignatureRequestFailed(StorageError):
    """Signature endpoint rejected the request or was unreachable."""


class UploadFailed(StorageError):
    """PUT against the signed URL failed."""


class PlatformOperationError(PublishError):
    """A release or preview call against the distribution platform failed."""

    def __init__(self, kind: str, cause: Optional[BaseException] = None):
        detail = _describe_exception(cause) if cause is not None else "unknown error"
        super().__init__(f"{kind} failed: {detail}")
        self.kind = kind
        self.cause = cause


def _describe_exception(exc: BaseException) -> str:
    message = str(exc).strip()
    if message:
        return message
    return f"{type(exc).__name__}: {repr(exc)}"

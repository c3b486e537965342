"""Orchestrator package - coordinates publish runs."""
from .core import PublishOrchestrator
from .models import PublishRequest, PublishResult, RunState, RunStatus
from .preview_handler import PreviewHandler

__all__ = [
    "PublishOrchestrator",
    "PublishRequest",
    "PublishResult",
    "RunState",
    "RunStatus",
    "PreviewHandler",
]

"""
Per-application collaborators and detached side-effect runners.
"""

from .context import LedgerContext, build_context
from .detached import DetachedRunner, InlineDetachedRunner, ThreadPoolDetachedRunner

__all__ = [
    "DetachedRunner",
    "InlineDetachedRunner",
    "LedgerContext",
    "ThreadPoolDetachedRunner",
    "build_context",
]

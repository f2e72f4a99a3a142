"""
Intent Ledger

Project memory for human intents, the decisions that resolve them, and the
AI proposals that only a human may commit.
"""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("intent-ledger")
except importlib.metadata.PackageNotFoundError:
    __version__ = "0.0.0"

from .core.context import LedgerContext
from .records.errors import (
    AlreadyReviewedError,
    AlreadySupersededError,
    InvalidTransitionError,
    LedgerError,
    NotFoundError,
    ValidationFailedError,
)

__all__ = [
    "AlreadyReviewedError",
    "AlreadySupersededError",
    "InvalidTransitionError",
    "LedgerContext",
    "LedgerError",
    "NotFoundError",
    "ValidationFailedError",
]

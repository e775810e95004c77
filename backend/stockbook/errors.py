# Overview: Closed error taxonomy for the order transaction engine.

"""
Stockbook error taxonomy (authoritative)

Fatal errors are exceptions. They abort the operation in flight and the
commit pipeline leaves the system in its pre-commit state.

Non-fatal outcomes are EngineWarning values. They are collected and
returned next to a successful result so the caller can render
"saved, but ..." feedback.

Gateways translate driver/storage errors into this taxonomy; the engine
never branches on anything else.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    VARIATION_MISSING = "variation_missing"
    EMPTY_CATALOG = "empty_catalog"
    PERSISTENCE = "persistence"
    STOCK_CONFLICT = "stock_conflict"
    LIFECYCLE = "lifecycle"
    STOCK_SYNC = "stock_sync"
    ACCOUNTING_SYNC = "accounting_sync"
    NUMBERING_FALLBACK = "numbering_fallback"


class EngineError(Exception):
    """Base class for fatal engine errors."""
    kind: ErrorKind = ErrorKind.PERSISTENCE

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "details": self.details}


class ValidationError(EngineError):
    """Draft failed validation. Raised before any I/O."""
    kind = ErrorKind.VALIDATION


class VariationMissing(EngineError):
    """A line's bound variation no longer resolves."""
    kind = ErrorKind.VARIATION_MISSING


class EmptyCatalog(EngineError):
    """A product resolved to zero variations (catalog inconsistency)."""
    kind = ErrorKind.EMPTY_CATALOG


class PersistenceError(EngineError):
    """Storage-layer failure while reading or writing a record."""
    kind = ErrorKind.PERSISTENCE


class StockConflict(EngineError):
    """Stock entry changed between read and write (optimistic check failed)."""
    kind = ErrorKind.STOCK_CONFLICT


class LifecycleError(EngineError):
    """Requested status transition is not allowed."""
    kind = ErrorKind.LIFECYCLE


@dataclass(frozen=True)
class EngineWarning:
    kind: ErrorKind
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "details": self.details}


def StockSyncWarning(message: str, **details) -> EngineWarning:
    return EngineWarning(ErrorKind.STOCK_SYNC, message, details)


def AccountingSyncWarning(message: str, **details) -> EngineWarning:
    return EngineWarning(ErrorKind.ACCOUNTING_SYNC, message, details)


def NumberingFallback(message: str, **details) -> EngineWarning:
    return EngineWarning(ErrorKind.NUMBERING_FALLBACK, message, details)

"""Failures raised while syncing an outbox record to a form engine."""

from __future__ import annotations


class SyncError(Exception):
    """Base class for sync failures; the worker requeues the record."""


class EngineResolutionError(SyncError):
    """No engine code could be determined for the record."""


class UnsupportedAggregateError(SyncError):
    """The record's aggregate type has no sync handler."""


class AdapterTimeoutError(SyncError):
    """The engine adapter did not answer in time."""


class InvalidEngineResponseError(SyncError):
    """The engine adapter answered without a usable engine ref."""


__all__ = [
    "AdapterTimeoutError",
    "EngineResolutionError",
    "InvalidEngineResponseError",
    "SyncError",
    "UnsupportedAggregateError",
]

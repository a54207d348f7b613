"""Importer adapters for external listing sources."""

from __future__ import annotations

from .hostfully import (
    HostfullyAdapterError,
    HostfullyAdapterReadiness,
    HostfullyApiError,
    HostfullyConfigError,
    check_hostfully_adapter_readiness,
)

__all__ = [
    "HostfullyAdapterError",
    "HostfullyAdapterReadiness",
    "HostfullyApiError",
    "HostfullyConfigError",
    "check_hostfully_adapter_readiness",
]

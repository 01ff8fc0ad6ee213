"""Per-platform resolvers and the router that dispatches between them."""

from __future__ import annotations

from .registry import ProviderRouter, extract_host
from .retry_guard import DomainValidityGuard

__all__ = ["DomainValidityGuard", "ProviderRouter", "extract_host"]

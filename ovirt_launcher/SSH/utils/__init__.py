"""Utility helpers for SSH tools.

This package groups small, focused helpers:
- masking: safe value masking for logs
- network: lightweight reachability checks
- types: shared TypedDict contracts for tool results
"""

from .types import (
    DisconnectResult,
    LaunchResult,
    ListNodesResult,
    ListVMsResult,
    NodeReachableResult,
    ConnectionCheckResult,
    VMStatusResult,
)

__all__ = [
    "DisconnectResult",
    "LaunchResult",
    "ListNodesResult",
    "ListVMsResult",
    "NodeReachableResult",
    "ConnectionCheckResult",
    "VMStatusResult",
]

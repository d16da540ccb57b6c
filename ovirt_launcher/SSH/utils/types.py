"""Shared TypedDict contracts for the MCP tools."""

from __future__ import annotations

from typing import TypedDict


class ListNodesResult(TypedDict):
    nodes: list[str]


class ListVMsResult(TypedDict):
    hypervisor: str
    vms: list[str]


class VMStatusResult(TypedDict):
    node: str
    vm: str
    status: str
    raw_status: str | None


class ConnectionCheckResult(TypedDict):
    hypervisor: str
    ok: bool
    vm_count: int | None
    reason: str | None


class LaunchResult(TypedDict):
    node: str
    status: str
    host: str | None
    stage: str | None
    error: str | None
    log: str


class DisconnectResult(TypedDict):
    node: str
    closed: bool


class NodeReachableResult(TypedDict):
    node: str
    host: str | None
    port: int
    reachable: bool
    latency_ms: float | None
    reason: str | None

"""Typed views of the oVirt objects the launcher reads."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class VmStatus(str, Enum):
    """Power states the launcher distinguishes.

    oVirt reports many more; anything not listed here maps to OTHER.
    """

    DOWN = "down"
    UP = "up"
    POWERING_UP = "powering_up"
    IMAGE_LOCKED = "image_locked"
    OTHER = "other"

    @classmethod
    def parse(cls, raw: str | None) -> "VmStatus":
        try:
            return cls((raw or "").lower())
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class VmHandle:
    """VM identity plus the state observed when the handle was fetched.

    `status` is only ever used for logging; decisions re-read it from the
    hypervisor.
    """

    id: str
    name: str
    status: VmStatus = VmStatus.OTHER
    raw_status: str | None = None
    cluster_id: str | None = None
    href: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "VmHandle":
        cluster = data.get("cluster") or {}
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            status=VmStatus.parse(data.get("status")),
            raw_status=data.get("status"),
            cluster_id=cluster.get("id"),
            href=data.get("href"),
        )


@dataclass(frozen=True)
class SnapshotRef:
    id: str
    description: str
    locked: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "SnapshotRef":
        return cls(
            id=str(data["id"]),
            description=str(data.get("description", "")),
            locked=data.get("snapshot_status") == "locked",
        )


@dataclass(frozen=True)
class IpAddress:
    address: str | None = None
    version: str | None = None

    @property
    def address_present(self) -> bool:
        return bool(self.address)


@dataclass(frozen=True)
class ReportedDevice:
    """Guest-reported endpoint of a NIC, carrying the IPs the agent saw."""

    id: str
    name: str = ""
    ips: list[IpAddress] = field(default_factory=list)

    @property
    def ips_present(self) -> bool:
        return bool(self.ips)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "ReportedDevice":
        ips = (data.get("ips") or {}).get("ip") or []
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            ips=[IpAddress(ip.get("address"), ip.get("version")) for ip in ips],
        )


@dataclass(frozen=True)
class Nic:
    id: str
    name: str = ""
    href: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Nic":
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            href=data.get("href"),
        )

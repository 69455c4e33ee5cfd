from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

NOT_AVAILABLE = "N/A"


class InstanceState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    STOPPING = "stopping"
    STOPPED = "stopped"


@dataclass(frozen=True)
class InstanceRecord:
    """Read projection of one EC2 instance; never written back."""

    instance_id: str
    state: InstanceState
    name: str = NOT_AVAILABLE
    private_ip: str = NOT_AVAILABLE
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))

    def to_dict(self, *, include_tags: bool = True) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "instanceId": self.instance_id,
            "privateIp": self.private_ip,
            "state": self.state.value,
        }
        if include_tags:
            payload["tags"] = dict(self.tags)
        return payload


InventorySnapshot = List[InstanceRecord]


def snapshot_to_payload(snapshot: InventorySnapshot, *, include_tags: bool = True) -> List[Dict[str, Any]]:
    return [record.to_dict(include_tags=include_tags) for record in snapshot]

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

from ec2_dashboard.inventory.models import NOT_AVAILABLE, InstanceRecord, InstanceState


def fold_tags(raw_tags: Iterable[Mapping[str, Any]] | None) -> Dict[str, str]:
    """Fold an EC2 ``Tags`` list into a mapping; a repeated key keeps its last value."""
    tags: Dict[str, str] = {}
    for tag in raw_tags or []:
        key = tag.get("Key")
        if key is None:
            continue
        tags[key] = tag.get("Value", "")
    return tags


def normalize_instance(raw: Mapping[str, Any]) -> InstanceRecord:
    instance_id = raw.get("InstanceId")
    if not instance_id:
        raise ValueError("instance is missing InstanceId")
    tags = fold_tags(raw.get("Tags"))
    state_name = (raw.get("State") or {}).get("Name", InstanceState.PENDING.value)
    return InstanceRecord(
        instance_id=instance_id,
        state=InstanceState(state_name),
        name=tags.get("Name", NOT_AVAILABLE),
        private_ip=raw.get("PrivateIpAddress") or NOT_AVAILABLE,
        tags=tags,
    )

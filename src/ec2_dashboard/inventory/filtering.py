from __future__ import annotations

from typing import Optional

from ec2_dashboard.inventory.models import InventorySnapshot


def filter_by_tag(
    snapshot: InventorySnapshot,
    key: Optional[str],
    value: Optional[str],
) -> InventorySnapshot:
    """Keep records whose tag ``key`` equals ``value`` ignoring case.

    A blank key or value clears the filter and returns the snapshot unchanged.
    Tag keys are matched exactly.
    """
    key = (key or "").strip()
    value = (value or "").strip()
    if not key or not value:
        return list(snapshot)
    wanted = value.casefold()
    return [
        record
        for record in snapshot
        if key in record.tags and record.tags[key].casefold() == wanted
    ]

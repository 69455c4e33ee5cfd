from __future__ import annotations

from typing import Any, Dict, Iterator, Optional

import boto3


class Ec2Adapter:
    def __init__(self, region: Optional[str] = None) -> None:
        self.client = boto3.client("ec2", region_name=region)

    def iter_instances(self) -> Iterator[Dict[str, Any]]:
        paginator = self.client.get_paginator("describe_instances")
        for page in paginator.paginate():
            for reservation in page.get("Reservations", []):
                yield from reservation.get("Instances", [])

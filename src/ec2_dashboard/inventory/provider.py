from __future__ import annotations

from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from ec2_dashboard.adapters.compute.ec2 import Ec2Adapter
from ec2_dashboard.inventory.models import InventorySnapshot
from ec2_dashboard.inventory.normalize import normalize_instance
from ec2_dashboard.util.errors import PermissionDenied, UpstreamUnavailable, is_permission_error
from ec2_dashboard.util.logging import get_logger, log_event


class InventoryProvider:
    def __init__(self, ec2: Optional[Ec2Adapter] = None, *, region: Optional[str] = None) -> None:
        self.ec2 = ec2 or Ec2Adapter(region)
        self.logger = get_logger(self.__class__.__name__)

    def list_instances(self) -> InventorySnapshot:
        try:
            raw_instances = list(self.ec2.iter_instances())
        except ClientError as exc:
            log_event(self.logger, "describe_instances_failed", error=str(exc))
            if is_permission_error(exc):
                raise PermissionDenied(str(exc), step="describe_instances") from exc
            raise UpstreamUnavailable(str(exc), step="describe_instances") from exc
        except BotoCoreError as exc:
            log_event(self.logger, "describe_instances_failed", error=str(exc))
            raise UpstreamUnavailable(str(exc), step="describe_instances") from exc
        snapshot = [normalize_instance(raw) for raw in raw_instances]
        log_event(self.logger, "instances_listed", count=len(snapshot))
        return snapshot

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Iterable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ec2_dashboard.util.logging import get_logger

DEFAULT_NAMESPACE = "EC2Dashboard"


@dataclass(frozen=True)
class MetricDimension:
    name: str
    value: str


class CloudWatchMetrics:
    def __init__(self, *, namespace: str, enabled: bool, region: Optional[str] = None) -> None:
        self.namespace = namespace
        self.enabled = enabled
        self.client = boto3.client("cloudwatch", region_name=region) if enabled else None
        self.logger = get_logger(self.__class__.__name__)

    @classmethod
    def from_env(cls, region: Optional[str] = None) -> "CloudWatchMetrics":
        enabled = os.getenv("CLOUDWATCH_METRICS_ENABLED", "false").lower() == "true"
        namespace = os.getenv("CLOUDWATCH_METRICS_NAMESPACE", DEFAULT_NAMESPACE)
        return cls(namespace=namespace, enabled=enabled, region=region)

    def _put_metric(
        self,
        *,
        name: str,
        value: float,
        unit: str = "Count",
        dimensions: Optional[Iterable[MetricDimension]] = None,
    ) -> None:
        if not self.enabled or not self.client:
            return
        payload = {
            "MetricName": name,
            "Value": value,
            "Unit": unit,
        }
        if dimensions:
            payload["Dimensions"] = [
                {"Name": dimension.name, "Value": dimension.value} for dimension in dimensions
            ]
        try:
            self.client.put_metric_data(
                Namespace=self.namespace,
                MetricData=[payload],
            )
        except (BotoCoreError, ClientError) as exc:
            self.logger.warning("cloudwatch_metric_failed", extra={"error": str(exc), "metric": name})

    def record_listing(self, *, instance_count: int, failed: bool) -> None:
        self._put_metric(name="ListingFailed", value=1.0 if failed else 0.0)
        if not failed:
            self._put_metric(name="InstanceCount", value=float(instance_count))

    def record_provisioning_failure(self, *, step: str) -> None:
        self._put_metric(
            name="ProvisioningFailed",
            value=1.0,
            dimensions=[MetricDimension(name="step", value=step)],
        )

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from ec2_dashboard.inventory.filtering import filter_by_tag
from ec2_dashboard.inventory.models import snapshot_to_payload
from ec2_dashboard.inventory.provider import InventoryProvider
from ec2_dashboard.util.errors import PermissionDenied, UpstreamUnavailable
from ec2_dashboard.util.logging import get_logger, log_event
from ec2_dashboard.util.metrics import CloudWatchMetrics

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,OPTIONS",
}

logger = get_logger("ec2_dashboard.handler")


def build_provider() -> InventoryProvider:
    return InventoryProvider()


def include_tags() -> bool:
    return os.getenv("INCLUDE_TAGS", "true").lower() != "false"


def _response(status_code: int, body: Optional[Any]) -> Dict[str, Any]:
    headers = dict(CORS_HEADERS)
    headers["Content-Type"] = "application/json"
    return {
        "statusCode": status_code,
        "headers": headers,
        "body": "" if body is None else json.dumps(body),
    }


def lambda_handler(event: Optional[Dict[str, Any]], context: Any) -> Dict[str, Any]:
    event = event or {}
    if event.get("httpMethod") == "OPTIONS":
        return _response(200, None)

    metrics = CloudWatchMetrics.from_env()
    try:
        snapshot = build_provider().list_instances()
    except PermissionDenied as exc:
        metrics.record_listing(instance_count=0, failed=True)
        log_event(logger, "listing_denied", level=logging.ERROR, error=str(exc))
        return _response(403, {"message": "Not permitted to list instances"})
    except UpstreamUnavailable as exc:
        metrics.record_listing(instance_count=0, failed=True)
        log_event(logger, "listing_failed", level=logging.ERROR, error=str(exc))
        return _response(502, {"message": "Instance listing unavailable"})

    metrics.record_listing(instance_count=len(snapshot), failed=False)
    params = event.get("queryStringParameters") or {}
    snapshot = filter_by_tag(snapshot, params.get("tagKey"), params.get("tagValue"))
    return _response(200, snapshot_to_payload(snapshot, include_tags=include_tags()))

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from ec2_dashboard.app.api.handler import include_tags
from ec2_dashboard.app.auth.bearer import BearerTokenAuth
from ec2_dashboard.inventory.filtering import filter_by_tag
from ec2_dashboard.inventory.models import snapshot_to_payload
from ec2_dashboard.inventory.provider import InventoryProvider
from ec2_dashboard.util.errors import PermissionDenied, UpstreamUnavailable

bearer_tokens = set(filter(None, os.getenv("DASHBOARD_BEARER_TOKENS", "").split(",")))

logger = logging.getLogger("ec2_dashboard.api")

auth_dependency = BearerTokenAuth(bearer_tokens)

app = FastAPI(title="EC2 Dashboard")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)


def get_provider() -> InventoryProvider:
    return InventoryProvider()


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/instances", dependencies=[Depends(auth_dependency)])
def list_instances(
    tag_key: Optional[str] = Query(default=None, alias="tagKey"),
    tag_value: Optional[str] = Query(default=None, alias="tagValue"),
    provider: InventoryProvider = Depends(get_provider),
) -> List[Dict[str, Any]]:
    try:
        snapshot = provider.list_instances()
    except PermissionDenied as exc:
        logger.exception("listing_denied")
        raise HTTPException(status_code=403, detail="Not permitted to list instances") from exc
    except UpstreamUnavailable as exc:
        logger.exception("listing_failed")
        raise HTTPException(status_code=502, detail="Instance listing unavailable") from exc
    snapshot = filter_by_tag(snapshot, tag_key, tag_value)
    return snapshot_to_payload(snapshot, include_tags=include_tags())

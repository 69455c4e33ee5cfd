from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import boto3
import yaml

from ec2_dashboard.app.models.config import DEFAULT_REGION, DeploymentConfig

SUPPORTED_SCHEMA_VERSIONS = {1}


def load_deployment_config(
    path: str | Path | None = None,
    *,
    overrides: Optional[Dict[str, Any]] = None,
) -> DeploymentConfig:
    data: Dict[str, Any] = {}
    if path:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value
    config = DeploymentConfig.model_validate(data)
    if config.schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"Unsupported schema_version {config.schema_version}")
    return config


def resolve_region(configured: Optional[str] = None) -> str:
    if configured:
        return configured
    for variable in ("AWS_REGION", "AWS_DEFAULT_REGION"):
        value = os.getenv(variable)
        if value:
            return value
    return boto3.session.Session().region_name or DEFAULT_REGION

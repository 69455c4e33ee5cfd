from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from ec2_dashboard.util.errors import client_error_code


@dataclass
class FunctionSpec:
    name: str
    role_arn: str
    handler: str
    runtime: str
    timeout_seconds: int
    memory_mb: int
    zip_bytes: bytes
    environment: Dict[str, str]


class LambdaAdapter:
    def __init__(self, region: Optional[str] = None) -> None:
        self.client = boto3.client("lambda", region_name=region)

    def get_function(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.client.get_function(FunctionName=name)
        except ClientError as exc:
            if client_error_code(exc) == "ResourceNotFoundException":
                return None
            raise
        return response["Configuration"]

    def create_function(self, spec: FunctionSpec) -> Dict[str, Any]:
        return self.client.create_function(
            FunctionName=spec.name,
            Runtime=spec.runtime,
            Role=spec.role_arn,
            Handler=spec.handler,
            Code={"ZipFile": spec.zip_bytes},
            Timeout=spec.timeout_seconds,
            MemorySize=spec.memory_mb,
            Environment={"Variables": spec.environment},
        )

    def delete_function(self, name: str) -> bool:
        try:
            self.client.delete_function(FunctionName=name)
        except ClientError as exc:
            if client_error_code(exc) == "ResourceNotFoundException":
                return False
            raise
        return True

    def add_permission(self, *, function_name: str, statement_id: str, source_arn: str) -> None:
        self.client.add_permission(
            FunctionName=function_name,
            StatementId=statement_id,
            Action="lambda:InvokeFunction",
            Principal="apigateway.amazonaws.com",
            SourceArn=source_arn,
        )

    def remove_permission(self, *, function_name: str, statement_id: str) -> None:
        self.client.remove_permission(FunctionName=function_name, StatementId=statement_id)

    def get_policy_statements(self, function_name: str) -> list[Dict[str, Any]]:
        try:
            response = self.client.get_policy(FunctionName=function_name)
        except ClientError as exc:
            if client_error_code(exc) == "ResourceNotFoundException":
                return []
            raise
        return json.loads(response["Policy"]).get("Statement", [])

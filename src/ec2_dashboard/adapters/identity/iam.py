from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from ec2_dashboard.util.errors import client_error_code

LAMBDA_TRUST_POLICY: Dict[str, Any] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": "lambda.amazonaws.com"},
            "Action": "sts:AssumeRole",
        }
    ],
}


class IamAdapter:
    def __init__(self, region: Optional[str] = None) -> None:
        self.client = boto3.client("iam", region_name=region)
        self.sts = boto3.client("sts", region_name=region)

    def caller_account_id(self) -> str:
        return self.sts.get_caller_identity()["Account"]

    def account_alias(self) -> Optional[str]:
        aliases = self.client.list_account_aliases().get("AccountAliases", [])
        return aliases[0] if aliases else None

    def get_role(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.client.get_role(RoleName=name)["Role"]
        except ClientError as exc:
            if client_error_code(exc) == "NoSuchEntity":
                return None
            raise

    def create_role(self, name: str, trust_policy: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self.client.create_role(
            RoleName=name,
            AssumeRolePolicyDocument=json.dumps(trust_policy or LAMBDA_TRUST_POLICY),
        )
        return response["Role"]

    def attach_policy(self, role_name: str, policy_arn: str) -> None:
        self.client.attach_role_policy(RoleName=role_name, PolicyArn=policy_arn)

    def attached_policy_arns(self, role_name: str) -> List[str]:
        paginator = self.client.get_paginator("list_attached_role_policies")
        arns: List[str] = []
        for page in paginator.paginate(RoleName=role_name):
            arns.extend(policy["PolicyArn"] for policy in page.get("AttachedPolicies", []))
        return arns

    def detach_policy(self, role_name: str, policy_arn: str) -> None:
        try:
            self.client.detach_role_policy(RoleName=role_name, PolicyArn=policy_arn)
        except ClientError as exc:
            if client_error_code(exc) != "NoSuchEntity":
                raise

    def delete_role(self, name: str) -> bool:
        try:
            self.client.delete_role(RoleName=name)
        except ClientError as exc:
            if client_error_code(exc) == "NoSuchEntity":
                return False
            raise
        return True

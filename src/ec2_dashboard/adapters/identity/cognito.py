from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from ec2_dashboard.util.errors import client_error_code

PASSWORD_POLICY = {
    "MinimumLength": 8,
    "RequireUppercase": True,
    "RequireLowercase": True,
    "RequireNumbers": True,
    "RequireSymbols": False,
}
CLIENT_AUTH_FLOWS = ["ALLOW_USER_PASSWORD_AUTH", "ALLOW_REFRESH_TOKEN_AUTH"]


class CognitoAdapter:
    def __init__(self, region: Optional[str] = None) -> None:
        self.client = boto3.client("cognito-idp", region_name=region)

    def find_user_pool(self, name: str) -> Optional[Dict[str, Any]]:
        paginator = self.client.get_paginator("list_user_pools")
        for page in paginator.paginate(PaginationConfig={"PageSize": 60}):
            for pool in page.get("UserPools", []):
                if pool["Name"] == name:
                    return self.client.describe_user_pool(UserPoolId=pool["Id"])["UserPool"]
        return None

    def create_user_pool(self, name: str) -> Dict[str, Any]:
        response = self.client.create_user_pool(
            PoolName=name,
            AutoVerifiedAttributes=["email"],
            Policies={"PasswordPolicy": PASSWORD_POLICY},
        )
        return response["UserPool"]

    def delete_user_pool(self, user_pool_id: str) -> bool:
        try:
            self.client.delete_user_pool(UserPoolId=user_pool_id)
        except ClientError as exc:
            if client_error_code(exc) == "ResourceNotFoundException":
                return False
            raise
        return True

    def find_client_id(self, user_pool_id: str, client_name: str) -> Optional[str]:
        paginator = self.client.get_paginator("list_user_pool_clients")
        for page in paginator.paginate(UserPoolId=user_pool_id, PaginationConfig={"PageSize": 60}):
            for app_client in page.get("UserPoolClients", []):
                if app_client["ClientName"] == client_name:
                    return app_client["ClientId"]
        return None

    def create_client(self, user_pool_id: str, client_name: str) -> str:
        response = self.client.create_user_pool_client(
            UserPoolId=user_pool_id,
            ClientName=client_name,
            ExplicitAuthFlows=CLIENT_AUTH_FLOWS,
        )
        return response["UserPoolClient"]["ClientId"]

    def create_user(self, user_pool_id: str, email: str, temporary_password: str) -> bool:
        """Create a verified user without sending an invitation; False if it already exists."""
        try:
            self.client.admin_create_user(
                UserPoolId=user_pool_id,
                Username=email,
                UserAttributes=[
                    {"Name": "email", "Value": email},
                    {"Name": "email_verified", "Value": "true"},
                ],
                TemporaryPassword=temporary_password,
                MessageAction="SUPPRESS",
            )
        except ClientError as exc:
            if client_error_code(exc) == "UsernameExistsException":
                return False
            raise
        return True

from __future__ import annotations

from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from ec2_dashboard.util.errors import client_error_code

CORS_ALLOW_HEADERS = "Content-Type,Authorization"
CORS_ALLOW_METHODS = "GET,OPTIONS"
CORS_ALLOW_ORIGIN = "*"


class ApiGatewayAdapter:
    def __init__(self, region: Optional[str] = None) -> None:
        self.client = boto3.client("apigateway", region_name=region)

    def find_rest_api_ids(self, name: str) -> List[str]:
        paginator = self.client.get_paginator("get_rest_apis")
        ids: List[str] = []
        for page in paginator.paginate():
            ids.extend(item["id"] for item in page.get("items", []) if item.get("name") == name)
        return ids

    def create_rest_api(self, name: str, description: str = "") -> str:
        response = self.client.create_rest_api(name=name, description=description)
        return response["id"]

    def delete_rest_api(self, api_id: str) -> bool:
        try:
            self.client.delete_rest_api(restApiId=api_id)
        except ClientError as exc:
            if client_error_code(exc) == "NotFoundException":
                return False
            raise
        return True

    def _resources(self, api_id: str) -> List[Dict[str, Any]]:
        paginator = self.client.get_paginator("get_resources")
        resources: List[Dict[str, Any]] = []
        for page in paginator.paginate(restApiId=api_id):
            resources.extend(page.get("items", []))
        return resources

    def root_resource_id(self, api_id: str) -> str:
        for resource in self._resources(api_id):
            if resource.get("path") == "/":
                return resource["id"]
        raise LookupError(f"REST API {api_id} has no root resource")

    def find_resource_id(self, api_id: str, path: str) -> Optional[str]:
        for resource in self._resources(api_id):
            if resource.get("path") == path:
                return resource["id"]
        return None

    def create_resource(self, api_id: str, parent_id: str, path_part: str) -> str:
        response = self.client.create_resource(restApiId=api_id, parentId=parent_id, pathPart=path_part)
        return response["id"]

    def delete_resource(self, api_id: str, resource_id: str) -> None:
        self.client.delete_resource(restApiId=api_id, resourceId=resource_id)

    def put_lambda_proxy_method(self, api_id: str, resource_id: str, integration_uri: str) -> None:
        self.client.put_method(
            restApiId=api_id,
            resourceId=resource_id,
            httpMethod="GET",
            authorizationType="NONE",
        )
        self.client.put_integration(
            restApiId=api_id,
            resourceId=resource_id,
            httpMethod="GET",
            type="AWS_PROXY",
            integrationHttpMethod="POST",
            uri=integration_uri,
        )

    def put_cors_preflight(self, api_id: str, resource_id: str) -> None:
        """Answer OPTIONS with a MOCK integration carrying the CORS headers."""
        self.client.put_method(
            restApiId=api_id,
            resourceId=resource_id,
            httpMethod="OPTIONS",
            authorizationType="NONE",
        )
        self.client.put_integration(
            restApiId=api_id,
            resourceId=resource_id,
            httpMethod="OPTIONS",
            type="MOCK",
            requestTemplates={"application/json": '{"statusCode": 200}'},
        )
        header_prefix = "method.response.header."
        self.client.put_method_response(
            restApiId=api_id,
            resourceId=resource_id,
            httpMethod="OPTIONS",
            statusCode="200",
            responseParameters={
                f"{header_prefix}Access-Control-Allow-Headers": False,
                f"{header_prefix}Access-Control-Allow-Methods": False,
                f"{header_prefix}Access-Control-Allow-Origin": False,
            },
        )
        self.client.put_integration_response(
            restApiId=api_id,
            resourceId=resource_id,
            httpMethod="OPTIONS",
            statusCode="200",
            responseParameters={
                f"{header_prefix}Access-Control-Allow-Headers": f"'{CORS_ALLOW_HEADERS}'",
                f"{header_prefix}Access-Control-Allow-Methods": f"'{CORS_ALLOW_METHODS}'",
                f"{header_prefix}Access-Control-Allow-Origin": f"'{CORS_ALLOW_ORIGIN}'",
            },
        )

    def create_deployment(self, api_id: str, stage_name: str, description: str = "") -> str:
        response = self.client.create_deployment(
            restApiId=api_id,
            stageName=stage_name,
            description=description,
        )
        return response["id"]

    def find_authorizer_id(self, api_id: str, name: str) -> Optional[str]:
        response = self.client.get_authorizers(restApiId=api_id, limit=500)
        for authorizer in response.get("items", []):
            if authorizer.get("name") == name:
                return authorizer["id"]
        return None

    def create_cognito_authorizer(
        self,
        api_id: str,
        *,
        name: str,
        user_pool_arn: str,
        identity_header: str,
    ) -> str:
        response = self.client.create_authorizer(
            restApiId=api_id,
            name=name,
            type="COGNITO_USER_POOLS",
            providerARNs=[user_pool_arn],
            identitySource=f"method.request.header.{identity_header}",
        )
        return response["id"]

    def set_method_authorization(
        self,
        api_id: str,
        resource_id: str,
        *,
        authorization_type: str,
        authorizer_id: Optional[str] = None,
        http_method: str = "GET",
    ) -> None:
        operations = [{"op": "replace", "path": "/authorizationType", "value": authorization_type}]
        if authorizer_id:
            operations.append({"op": "replace", "path": "/authorizerId", "value": authorizer_id})
        self.client.update_method(
            restApiId=api_id,
            resourceId=resource_id,
            httpMethod=http_method,
            patchOperations=operations,
        )

    def get_method(self, api_id: str, resource_id: str, http_method: str = "GET") -> Dict[str, Any]:
        return self.client.get_method(restApiId=api_id, resourceId=resource_id, httpMethod=http_method)

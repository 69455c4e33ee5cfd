import json

import boto3
from botocore.exceptions import ClientError
from moto import mock_aws

from ec2_dashboard.adapters.compute.lambda_functions import FunctionSpec, LambdaAdapter
from ec2_dashboard.adapters.gateway.apigateway import ApiGatewayAdapter
from ec2_dashboard.adapters.identity.cognito import CognitoAdapter
from ec2_dashboard.adapters.identity.iam import IamAdapter
from ec2_dashboard.app.models.config import DeploymentConfig, ReadinessConfig
from ec2_dashboard.provisioning.naming import FUNCTION_HANDLER, resource_names
from ec2_dashboard.provisioning.packaging import build_function_zip, code_sha256
from ec2_dashboard.provisioning.reconciler import Reconciler

REGION = "eu-west-1"


def _custom_policy() -> str:
    client = boto3.client("iam", region_name=REGION)
    document = {
        "Version": "2012-10-17",
        "Statement": [{"Effect": "Allow", "Action": "ec2:DescribeInstances", "Resource": "*"}],
    }
    response = client.create_policy(PolicyName="describe-only", PolicyDocument=json.dumps(document))
    return response["Policy"]["Arn"]


@mock_aws
def test_iam_adapter_role_lifecycle() -> None:
    adapter = IamAdapter(REGION)
    policy_arn = _custom_policy()

    assert adapter.get_role("dashboard-role") is None
    role = adapter.create_role("dashboard-role")
    adapter.attach_policy("dashboard-role", policy_arn)

    assert adapter.get_role("dashboard-role")["Arn"] == role["Arn"]
    assert adapter.attached_policy_arns("dashboard-role") == [policy_arn]
    assert adapter.caller_account_id() == "123456789012"

    adapter.detach_policy("dashboard-role", policy_arn)
    assert adapter.attached_policy_arns("dashboard-role") == []
    assert adapter.delete_role("dashboard-role") is True
    assert adapter.delete_role("dashboard-role") is False
    assert adapter.get_role("dashboard-role") is None


@mock_aws
def test_iam_adapter_account_alias() -> None:
    adapter = IamAdapter(REGION)
    assert adapter.account_alias() is None

    boto3.client("iam", region_name=REGION).create_account_alias(AccountAlias="acme-prod")

    assert adapter.account_alias() == "acme-prod"


@mock_aws
def test_lambda_adapter_function_lifecycle() -> None:
    role_arn = IamAdapter(REGION).create_role("fn-role")["Arn"]
    adapter = LambdaAdapter(REGION)
    zip_bytes = build_function_zip()
    spec = FunctionSpec(
        name="dashboard-fn",
        role_arn=role_arn,
        handler=FUNCTION_HANDLER,
        runtime="python3.11",
        timeout_seconds=30,
        memory_mb=128,
        zip_bytes=zip_bytes,
        environment={"INCLUDE_TAGS": "true"},
    )

    assert adapter.get_function("dashboard-fn") is None
    created = adapter.create_function(spec)
    configuration = adapter.get_function("dashboard-fn")

    assert configuration["FunctionArn"] == created["FunctionArn"]
    assert configuration["CodeSha256"] == code_sha256(zip_bytes)
    assert configuration["Handler"] == FUNCTION_HANDLER
    assert configuration["Environment"]["Variables"] == {"INCLUDE_TAGS": "true"}

    adapter.add_permission(
        function_name="dashboard-fn",
        statement_id="apigateway-invoke",
        source_arn="arn:aws:execute-api:eu-west-1:123456789012:abc123/*/*",
    )
    statements = adapter.get_policy_statements("dashboard-fn")
    assert [statement["Sid"] for statement in statements] == ["apigateway-invoke"]

    assert adapter.delete_function("dashboard-fn") is True
    assert adapter.delete_function("dashboard-fn") is False
    assert adapter.get_function("dashboard-fn") is None


@mock_aws
def test_apigateway_adapter_builds_proxy_endpoint() -> None:
    adapter = ApiGatewayAdapter(REGION)
    api_id = adapter.create_rest_api("dashboard-api")
    adapter.create_rest_api("other-api")
    resource_id = adapter.create_resource(api_id, adapter.root_resource_id(api_id), "instances")
    uri = "arn:aws:apigateway:eu-west-1:lambda:path/2015-03-31/functions/arn:fn/invocations"

    adapter.put_lambda_proxy_method(api_id, resource_id, uri)
    adapter.put_cors_preflight(api_id, resource_id)
    adapter.create_deployment(api_id, "prod")

    assert adapter.find_rest_api_ids("dashboard-api") == [api_id]
    assert adapter.find_resource_id(api_id, "/instances") == resource_id
    assert adapter.find_resource_id(api_id, "/servers") is None
    method = adapter.get_method(api_id, resource_id)
    assert method["authorizationType"] == "NONE"
    assert method["methodIntegration"]["type"] == "AWS_PROXY"
    assert method["methodIntegration"]["uri"] == uri
    preflight = adapter.client.get_integration_response(
        restApiId=api_id,
        resourceId=resource_id,
        httpMethod="OPTIONS",
        statusCode="200",
    )
    assert preflight["responseParameters"]["method.response.header.Access-Control-Allow-Origin"] == "'*'"

    adapter.delete_resource(api_id, resource_id)
    assert adapter.find_resource_id(api_id, "/instances") is None
    assert adapter.delete_rest_api(api_id) is True
    assert adapter.find_rest_api_ids("dashboard-api") == []


class MissingApiClient:
    def delete_rest_api(self, restApiId: str) -> None:
        raise ClientError(
            {"Error": {"Code": "NotFoundException", "Message": "Invalid API identifier specified"}},
            "DeleteRestApi",
        )


def test_apigateway_adapter_delete_missing_api() -> None:
    adapter = ApiGatewayAdapter(REGION)
    adapter.client = MissingApiClient()

    assert adapter.delete_rest_api("gone") is False


@mock_aws
def test_apigateway_adapter_authorizer_lookup() -> None:
    adapter = ApiGatewayAdapter(REGION)
    api_id = adapter.create_rest_api("dashboard-api")
    pool_arn = "arn:aws:cognito-idp:eu-west-1:123456789012:userpool/eu-west-1_abc"

    assert adapter.find_authorizer_id(api_id, "CognitoAuthorizer") is None
    authorizer_id = adapter.create_cognito_authorizer(
        api_id,
        name="CognitoAuthorizer",
        user_pool_arn=pool_arn,
        identity_header="Authorization",
    )

    assert adapter.find_authorizer_id(api_id, "CognitoAuthorizer") == authorizer_id


@mock_aws
def test_cognito_adapter_pool_client_and_user() -> None:
    adapter = CognitoAdapter(REGION)
    assert adapter.find_user_pool("dashboard-users") is None

    pool = adapter.create_user_pool("dashboard-users")
    found = adapter.find_user_pool("dashboard-users")
    assert found["Id"] == pool["Id"]
    assert found["Arn"].startswith("arn:aws:cognito-idp:")

    client_id = adapter.create_client(pool["Id"], "dashboard-client")
    assert adapter.find_client_id(pool["Id"], "dashboard-client") == client_id
    assert adapter.find_client_id(pool["Id"], "missing") is None

    assert adapter.create_user(pool["Id"], "admin@example.com", "Passw0rdAb") is True
    assert adapter.create_user(pool["Id"], "admin@example.com", "Passw0rdAb") is False

    assert adapter.delete_user_pool(pool["Id"]) is True
    assert adapter.find_user_pool("dashboard-users") is None


def test_rerun_against_aws_keeps_one_function_and_endpoint(monkeypatch) -> None:
    monkeypatch.setenv("MOTO_IAM_LOAD_MANAGED_POLICIES", "true")
    names = resource_names("team-a")
    config = DeploymentConfig(
        scope="team-a",
        readiness=ReadinessConfig(poll_initial_seconds=0, poll_max_seconds=0, max_attempts=5),
    )

    with mock_aws():
        reconciler = Reconciler(region=REGION, sleep=lambda _: None)
        first = reconciler.reconcile(config)
        second = reconciler.reconcile(config)

        functions = boto3.client("lambda", region_name=REGION).list_functions()["Functions"]
        assert [function["FunctionName"] for function in functions] == [names.function]
        apis = boto3.client("apigateway", region_name=REGION).get_rest_apis()["items"]
        assert [api["name"] for api in apis] == [names.api]
        assert second.endpoint == first.endpoint
        assert second.api_id == first.api_id

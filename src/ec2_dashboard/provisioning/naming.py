from __future__ import annotations

from dataclasses import dataclass

FUNCTION_HANDLER = "ec2_dashboard.app.api.handler.lambda_handler"
PERMISSION_STATEMENT_ID = "apigateway-invoke"
DEFAULT_SCOPE = "aws-account"
NAME_PREFIX = "EC2Dashboard"


@dataclass(frozen=True)
class ResourceNames:
    scope: str
    function: str
    role: str
    api: str
    user_pool: str
    app_client: str


def resource_names(scope: str) -> ResourceNames:
    """Every name is a pure function of the scope so reruns target the same resources."""
    if not scope:
        raise ValueError("scope is required")
    base = f"{NAME_PREFIX}-{scope}"
    return ResourceNames(
        scope=scope,
        function=base,
        role=f"{base}-Role",
        api=f"{base}-API",
        user_pool=f"{base}-Users",
        app_client=f"{base}-Client",
    )


def integration_uri(region: str, function_arn: str) -> str:
    return f"arn:aws:apigateway:{region}:lambda:path/2015-03-31/functions/{function_arn}/invocations"


def execute_api_source_arn(region: str, account_id: str, api_id: str) -> str:
    return f"arn:aws:execute-api:{region}:{account_id}:{api_id}/*/*"


def endpoint_url(api_id: str, region: str, stage_name: str = "prod", path_part: str = "instances") -> str:
    return f"https://{api_id}.execute-api.{region}.amazonaws.com/{stage_name}/{path_part}"

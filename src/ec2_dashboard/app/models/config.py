from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

LAMBDA_BASIC_EXECUTION_POLICY = "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
EC2_READ_ONLY_POLICY = "arn:aws:iam::aws:policy/AmazonEC2ReadOnlyAccess"
DEFAULT_REGION = "eu-west-1"


class FunctionConfig(BaseModel):
    runtime: str = "python3.11"
    timeout_seconds: int = Field(default=30, ge=1, le=900)
    memory_mb: int = Field(default=128, ge=128, le=10240)
    replace_policy: Literal["always", "on_change"] = "always"
    include_tags: bool = True


class GatewayConfig(BaseModel):
    stage_name: str = "prod"
    path_part: str = "instances"
    replace_policy: Literal["reset", "recreate"] = "reset"


class ReadinessConfig(BaseModel):
    settle_seconds: float = Field(default=0.0, ge=0)
    poll_initial_seconds: float = Field(default=1.0, ge=0)
    poll_max_seconds: float = Field(default=8.0, ge=0)
    deadline_seconds: float = Field(default=60.0, gt=0)
    max_attempts: int = Field(default=12, ge=1)


class AuthorizerConfig(BaseModel):
    first_user_email: str
    user_pool_name: Optional[str] = None
    temporary_password: Optional[str] = None
    authorizer_name: str = "CognitoAuthorizer"
    identity_header: str = "Authorization"

    @field_validator("first_user_email")
    @classmethod
    def email_like(cls, value: str) -> str:
        value = value.strip()
        if "@" not in value:
            raise ValueError("first_user_email must be an email address")
        return value


class DashboardConfig(BaseModel):
    output_dir: str = "."
    inline_config: bool = False


class DeploymentConfig(BaseModel):
    schema_version: int = 1
    scope: Optional[str] = None
    region: Optional[str] = None
    managed_policy_arns: List[str] = Field(
        default_factory=lambda: [LAMBDA_BASIC_EXECUTION_POLICY, EC2_READ_ONLY_POLICY]
    )
    rollback_on_failure: bool = False
    function: FunctionConfig = Field(default_factory=FunctionConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    readiness: ReadinessConfig = Field(default_factory=ReadinessConfig)
    authorizer: Optional[AuthorizerConfig] = None
    dashboard: DashboardConfig = Field(default_factory=DashboardConfig)

    @field_validator("scope")
    @classmethod
    def scope_token(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if not all(char.isalnum() or char in "-_" for char in value):
            raise ValueError("scope may only contain letters, digits, '-' and '_'")
        return value

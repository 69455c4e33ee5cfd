from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from ec2_dashboard.adapters.compute.lambda_functions import FunctionSpec, LambdaAdapter
from ec2_dashboard.adapters.gateway.apigateway import ApiGatewayAdapter
from ec2_dashboard.adapters.identity.cognito import CognitoAdapter
from ec2_dashboard.adapters.identity.iam import IamAdapter
from ec2_dashboard.app.models.config import DeploymentConfig
from ec2_dashboard.provisioning.authorizer import AuthorizerProvisioner, AuthorizerResult
from ec2_dashboard.provisioning.ledger import ResourceLedger
from ec2_dashboard.provisioning.naming import (
    DEFAULT_SCOPE,
    FUNCTION_HANDLER,
    PERMISSION_STATEMENT_ID,
    ResourceNames,
    endpoint_url,
    execute_api_source_arn,
    integration_uri,
    resource_names,
)
from ec2_dashboard.provisioning.packaging import build_function_zip, code_sha256
from ec2_dashboard.provisioning.readiness import call_when_ready, wait_until
from ec2_dashboard.provisioning.steps import provisioning_step
from ec2_dashboard.util.errors import (
    ConflictingResource,
    DependencyNotReady,
    NonRetryableError,
    RetryableError,
    client_error_code,
)
from ec2_dashboard.util.logging import get_logger, log_event
from ec2_dashboard.util.metrics import CloudWatchMetrics

logger = get_logger("ec2_dashboard.reconciler")

# Lambda reports a freshly created role this way until IAM propagates.
ROLE_NOT_ASSUMABLE = "cannot be assumed"


@dataclass
class DeploymentResult:
    scope: str
    region: str
    account_id: str
    names: ResourceNames
    role_arn: str
    function_arn: str
    api_id: str
    resource_id: str
    stage_name: str
    endpoint: str
    created: List[Tuple[str, str]] = field(default_factory=list)
    authorizer: Optional[AuthorizerResult] = None
    deployed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def function_matches(existing: Dict[str, Any], spec: FunctionSpec, sha256: str) -> bool:
    variables = (existing.get("Environment") or {}).get("Variables") or {}
    return (
        existing.get("CodeSha256") == sha256
        and existing.get("Runtime") == spec.runtime
        and existing.get("Handler") == spec.handler
        and existing.get("Role") == spec.role_arn
        and existing.get("Timeout") == spec.timeout_seconds
        and existing.get("MemorySize") == spec.memory_mb
        and variables == spec.environment
    )


def scope_from_account_alias(iam: IamAdapter) -> str:
    """First account alias, or the default scope when there is none or it cannot be read."""
    try:
        alias = iam.account_alias()
    except (BotoCoreError, ClientError) as exc:
        log_event(logger, "account_alias_unavailable", level=logging.WARNING, error=str(exc))
        return DEFAULT_SCOPE
    return alias or DEFAULT_SCOPE


class Reconciler:
    """Converges the role, function and gateway endpoint for one scope.

    Steps run strictly in dependency order: role, function, endpoint
    (resource, methods, integration, deployment), invoke permission, then the
    optional authorizer. Any failure aborts the run; resources created so far
    stay in place unless ``rollback_on_failure`` is set.
    """

    def __init__(
        self,
        *,
        region: str,
        iam: Optional[IamAdapter] = None,
        functions: Optional[LambdaAdapter] = None,
        gateway: Optional[ApiGatewayAdapter] = None,
        cognito: Optional[CognitoAdapter] = None,
        metrics: Optional[CloudWatchMetrics] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.region = region
        self.iam = iam or IamAdapter(region)
        self.functions = functions or LambdaAdapter(region)
        self.gateway = gateway or ApiGatewayAdapter(region)
        self._cognito = cognito
        self.metrics = metrics or CloudWatchMetrics.from_env(region)
        self.sleep = sleep
        self.logger = get_logger(self.__class__.__name__)

    @property
    def cognito(self) -> CognitoAdapter:
        if self._cognito is None:
            self._cognito = CognitoAdapter(self.region)
        return self._cognito

    def resolve_scope(self, config: DeploymentConfig) -> str:
        return config.scope or scope_from_account_alias(self.iam)

    def reconcile(self, config: DeploymentConfig) -> DeploymentResult:
        scope = self.resolve_scope(config)
        names = resource_names(scope)
        ledger = ResourceLedger()
        log_event(self.logger, "reconcile_started", scope=scope, region=self.region)
        try:
            with provisioning_step(self.logger, "caller_identity"):
                account_id = self.iam.caller_account_id()
            role_arn = self.ensure_role(names, config, ledger)
            function_arn = self.ensure_function(names, role_arn, config, ledger)
            api_id, resource_id = self.ensure_endpoint(names, function_arn, config, ledger)
            self.grant_invoke(names, account_id=account_id, api_id=api_id)
            authorizer = None
            if config.authorizer:
                authorizer = AuthorizerProvisioner(
                    region=self.region,
                    gateway=self.gateway,
                    cognito=self.cognito,
                ).attach(
                    api_id=api_id,
                    names=names,
                    config=config.authorizer,
                    stage_name=config.gateway.stage_name,
                    path_part=config.gateway.path_part,
                    resource_id=resource_id,
                    ledger=ledger,
                )
        except (RetryableError, NonRetryableError) as exc:
            self.metrics.record_provisioning_failure(step=exc.step or "unknown")
            log_event(
                self.logger,
                "reconcile_failed",
                level=logging.ERROR,
                scope=scope,
                step=exc.step,
                error=str(exc),
                created=ledger.identifiers(),
            )
            if config.rollback_on_failure:
                leftovers = ledger.compensate()
                if leftovers:
                    log_event(
                        self.logger,
                        "manual_cleanup_required",
                        level=logging.ERROR,
                        resources=[(entry.kind, entry.identifier) for entry in leftovers],
                    )
            raise

        endpoint = endpoint_url(api_id, self.region, config.gateway.stage_name, config.gateway.path_part)
        log_event(self.logger, "reconcile_completed", scope=scope, endpoint=endpoint)
        return DeploymentResult(
            scope=scope,
            region=self.region,
            account_id=account_id,
            names=names,
            role_arn=role_arn,
            function_arn=function_arn,
            api_id=api_id,
            resource_id=resource_id,
            stage_name=config.gateway.stage_name,
            endpoint=endpoint,
            created=ledger.identifiers(),
            authorizer=authorizer,
        )

    def ensure_role(self, names: ResourceNames, config: DeploymentConfig, ledger: ResourceLedger) -> str:
        with provisioning_step(self.logger, "create_role"):
            try:
                role = self.iam.create_role(names.role)
            except ClientError as exc:
                if client_error_code(exc) != "EntityAlreadyExists":
                    raise
                log_event(self.logger, "role_exists", role=names.role)
                role = None
            else:
                log_event(self.logger, "role_created", role=names.role)
                ledger.record("role", names.role, lambda: self._delete_role(names.role))

        with provisioning_step(self.logger, "attach_role_policies"):
            for policy_arn in config.managed_policy_arns:
                try:
                    self.iam.attach_policy(names.role, policy_arn)
                except ClientError as exc:
                    if client_error_code(exc) != "EntityAlreadyExists":
                        raise
                log_event(self.logger, "role_policy_attached", role=names.role, policy_arn=policy_arn)

        if role is not None and config.readiness.settle_seconds:
            self.sleep(config.readiness.settle_seconds)

        observed: Dict[str, Any] = {}

        def role_visible() -> bool:
            found = self.iam.get_role(names.role)
            if found:
                observed.update(found)
            return found is not None

        with provisioning_step(self.logger, "wait_for_role"):
            wait_until(role_visible, what="role", readiness=config.readiness, sleep=self.sleep)
        return observed["Arn"]

    def _function_spec(self, names: ResourceNames, role_arn: str, config: DeploymentConfig) -> FunctionSpec:
        return FunctionSpec(
            name=names.function,
            role_arn=role_arn,
            handler=FUNCTION_HANDLER,
            runtime=config.function.runtime,
            timeout_seconds=config.function.timeout_seconds,
            memory_mb=config.function.memory_mb,
            zip_bytes=build_function_zip(),
            environment={"INCLUDE_TAGS": "true" if config.function.include_tags else "false"},
        )

    def _create_function(self, spec: FunctionSpec) -> Dict[str, Any]:
        try:
            return self.functions.create_function(spec)
        except ClientError as exc:
            if client_error_code(exc) == "InvalidParameterValueException" and ROLE_NOT_ASSUMABLE in str(exc):
                raise DependencyNotReady(str(exc), step="create_function") from exc
            raise

    def ensure_function(
        self,
        names: ResourceNames,
        role_arn: str,
        config: DeploymentConfig,
        ledger: ResourceLedger,
    ) -> str:
        spec = self._function_spec(names, role_arn, config)
        sha256 = code_sha256(spec.zip_bytes)

        with provisioning_step(self.logger, "inspect_function"):
            existing = self.functions.get_function(names.function)

        if existing and config.function.replace_policy == "on_change" and function_matches(existing, spec, sha256):
            log_event(self.logger, "function_unchanged", function=names.function)
            return existing["FunctionArn"]

        if existing:
            with provisioning_step(self.logger, "delete_function"):
                try:
                    self.functions.delete_function(names.function)
                except ClientError as exc:
                    raise ConflictingResource(
                        f"could not remove existing function {names.function}: {exc}",
                        step="delete_function",
                    ) from exc
                wait_until(
                    lambda: self.functions.get_function(names.function) is None,
                    what="function_deleted",
                    readiness=config.readiness,
                    sleep=self.sleep,
                )
            log_event(self.logger, "function_deleted", function=names.function)

        with provisioning_step(self.logger, "create_function"):
            created = call_when_ready(
                lambda: self._create_function(spec),
                readiness=config.readiness,
                sleep=self.sleep,
            )
        ledger.record("function", names.function, lambda: self.functions.delete_function(names.function))
        return created["FunctionArn"]

    def ensure_endpoint(
        self,
        names: ResourceNames,
        function_arn: str,
        config: DeploymentConfig,
        ledger: ResourceLedger,
    ) -> Tuple[str, str]:
        gateway_config = config.gateway
        with provisioning_step(self.logger, "find_rest_api"):
            existing_ids = self.gateway.find_rest_api_ids(names.api)

        kept_id: Optional[str] = None
        stale_ids = existing_ids
        if existing_ids and gateway_config.replace_policy == "reset":
            kept_id, stale_ids = existing_ids[0], existing_ids[1:]

        for stale_id in stale_ids:
            with provisioning_step(self.logger, "delete_rest_api"):
                try:
                    self.gateway.delete_rest_api(stale_id)
                except ClientError as exc:
                    raise ConflictingResource(
                        f"could not remove existing REST API {stale_id} ({names.api}): {exc}",
                        step="delete_rest_api",
                    ) from exc
            log_event(self.logger, "api_deleted", api=names.api, api_id=stale_id)

        if kept_id:
            api_id = kept_id
            with provisioning_step(self.logger, "reset_rest_api"):
                old_resource = self.gateway.find_resource_id(api_id, f"/{gateway_config.path_part}")
                if old_resource:
                    self.gateway.delete_resource(api_id, old_resource)
            log_event(self.logger, "api_reset", api=names.api, api_id=api_id)
        else:
            with provisioning_step(self.logger, "create_rest_api"):
                api_id = self.gateway.create_rest_api(names.api, description=f"EC2 inventory for {names.scope}")
            ledger.record("rest_api", api_id, lambda: self.gateway.delete_rest_api(api_id))

        with provisioning_step(self.logger, "create_resource"):
            root_id = self.gateway.root_resource_id(api_id)
            resource_id = self.gateway.create_resource(api_id, root_id, gateway_config.path_part)

        with provisioning_step(self.logger, "bind_method"):
            self.gateway.put_lambda_proxy_method(api_id, resource_id, integration_uri(self.region, function_arn))
            self.gateway.put_cors_preflight(api_id, resource_id)

        with provisioning_step(self.logger, "create_deployment"):
            self.gateway.create_deployment(api_id, gateway_config.stage_name)
        log_event(self.logger, "api_deployed", api_id=api_id, stage=gateway_config.stage_name)
        return api_id, resource_id

    def grant_invoke(self, names: ResourceNames, *, account_id: str, api_id: str) -> None:
        source_arn = execute_api_source_arn(self.region, account_id, api_id)
        with provisioning_step(self.logger, "grant_permission"):
            try:
                self.functions.add_permission(
                    function_name=names.function,
                    statement_id=PERMISSION_STATEMENT_ID,
                    source_arn=source_arn,
                )
            except ClientError as exc:
                if client_error_code(exc) != "ResourceConflictException":
                    raise
                # Statement survives from an unchanged function; its source ARN may be stale.
                self.functions.remove_permission(function_name=names.function, statement_id=PERMISSION_STATEMENT_ID)
                self.functions.add_permission(
                    function_name=names.function,
                    statement_id=PERMISSION_STATEMENT_ID,
                    source_arn=source_arn,
                )
        log_event(self.logger, "permission_granted", function=names.function, source_arn=source_arn)

    def _delete_role(self, role_name: str) -> None:
        for policy_arn in self.iam.attached_policy_arns(role_name):
            self.iam.detach_policy(role_name, policy_arn)
        self.iam.delete_role(role_name)

    def teardown(
        self,
        scope: str,
        *,
        user_pool_name: Optional[str] = None,
        delete_user_pool: bool = False,
    ) -> List[Tuple[str, str]]:
        """Delete every resource a reconcile for ``scope`` owns; missing ones are skipped."""
        names = resource_names(scope)
        removed: List[Tuple[str, str]] = []

        with provisioning_step(self.logger, "delete_rest_api"):
            for api_id in self.gateway.find_rest_api_ids(names.api):
                if self.gateway.delete_rest_api(api_id):
                    removed.append(("rest_api", api_id))

        with provisioning_step(self.logger, "delete_function"):
            if self.functions.delete_function(names.function):
                removed.append(("function", names.function))

        with provisioning_step(self.logger, "delete_role"):
            if self.iam.get_role(names.role):
                self._delete_role(names.role)
                removed.append(("role", names.role))

        if delete_user_pool:
            pool_name = user_pool_name or names.user_pool
            with provisioning_step(self.logger, "delete_user_pool"):
                pool = self.cognito.find_user_pool(pool_name)
                if pool and self.cognito.delete_user_pool(pool["Id"]):
                    removed.append(("user_pool", pool["Id"]))

        log_event(self.logger, "teardown_completed", scope=scope, removed=removed)
        return removed

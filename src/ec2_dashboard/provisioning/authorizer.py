from __future__ import annotations

import secrets
import string
from dataclasses import dataclass
from typing import Optional

from ec2_dashboard.adapters.gateway.apigateway import ApiGatewayAdapter
from ec2_dashboard.adapters.identity.cognito import CognitoAdapter
from ec2_dashboard.app.models.config import AuthorizerConfig
from ec2_dashboard.provisioning.ledger import ResourceLedger
from ec2_dashboard.provisioning.naming import ResourceNames
from ec2_dashboard.provisioning.steps import provisioning_step
from ec2_dashboard.util.errors import ProvisioningError
from ec2_dashboard.util.logging import get_logger, log_event

AUTHORIZATION_TYPE = "COGNITO_USER_POOLS"


@dataclass
class AuthorizerResult:
    api_id: str
    resource_id: str
    stage_name: str
    region: str
    user_pool_id: str
    user_pool_arn: str
    client_id: str
    authorizer_id: str
    identity_header: str
    first_user_email: str
    temporary_password: Optional[str] = None


def generate_temporary_password(length: int = 16) -> str:
    """Random password meeting the pool policy: upper, lower and digits."""
    alphabet = string.ascii_letters + string.digits
    while True:
        candidate = "".join(secrets.choice(alphabet) for _ in range(length))
        if (
            any(char.islower() for char in candidate)
            and any(char.isupper() for char in candidate)
            and any(char.isdigit() for char in candidate)
        ):
            return candidate


class AuthorizerProvisioner:
    """Switches the inventory method from open to Cognito-token validated.

    Pool, client and authorizer are reused by name, so attaching twice is safe.
    Gateway changes only go live after the redeploy at the end of ``attach``
    and ``detach``.
    """

    def __init__(
        self,
        *,
        region: str,
        gateway: Optional[ApiGatewayAdapter] = None,
        cognito: Optional[CognitoAdapter] = None,
    ) -> None:
        self.region = region
        self.gateway = gateway or ApiGatewayAdapter(region)
        self.cognito = cognito or CognitoAdapter(region)
        self.logger = get_logger(self.__class__.__name__)

    def _resource_id(self, api_id: str, path_part: str) -> str:
        with provisioning_step(self.logger, "find_resource"):
            resource_id = self.gateway.find_resource_id(api_id, f"/{path_part}")
        if not resource_id:
            raise ProvisioningError(f"REST API {api_id} has no /{path_part} resource", step="find_resource")
        return resource_id

    def attach(
        self,
        *,
        api_id: str,
        names: ResourceNames,
        config: AuthorizerConfig,
        stage_name: str = "prod",
        path_part: str = "instances",
        resource_id: Optional[str] = None,
        ledger: Optional[ResourceLedger] = None,
    ) -> AuthorizerResult:
        ledger = ledger or ResourceLedger()
        resource_id = resource_id or self._resource_id(api_id, path_part)
        pool_name = config.user_pool_name or names.user_pool

        with provisioning_step(self.logger, "create_user_pool"):
            pool = self.cognito.find_user_pool(pool_name)
            if pool:
                log_event(self.logger, "user_pool_exists", name=pool_name, user_pool_id=pool["Id"])
            else:
                pool = self.cognito.create_user_pool(pool_name)
                pool_id = pool["Id"]
                ledger.record("user_pool", pool_id, lambda: self.cognito.delete_user_pool(pool_id))

        with provisioning_step(self.logger, "create_app_client"):
            client_id = self.cognito.find_client_id(pool["Id"], names.app_client)
            if client_id:
                log_event(self.logger, "app_client_exists", client_id=client_id)
            else:
                client_id = self.cognito.create_client(pool["Id"], names.app_client)
                log_event(self.logger, "app_client_created", client_id=client_id)

        temporary_password: Optional[str] = config.temporary_password or generate_temporary_password()
        with provisioning_step(self.logger, "create_first_user"):
            created = self.cognito.create_user(pool["Id"], config.first_user_email, temporary_password)
        if created:
            log_event(self.logger, "first_user_created", email=config.first_user_email)
        else:
            log_event(self.logger, "first_user_exists", email=config.first_user_email)
            temporary_password = None

        with provisioning_step(self.logger, "create_authorizer"):
            authorizer_id = self.gateway.find_authorizer_id(api_id, config.authorizer_name)
            if not authorizer_id:
                authorizer_id = self.gateway.create_cognito_authorizer(
                    api_id,
                    name=config.authorizer_name,
                    user_pool_arn=pool["Arn"],
                    identity_header=config.identity_header,
                )
                log_event(self.logger, "authorizer_created", authorizer_id=authorizer_id)

        with provisioning_step(self.logger, "attach_authorizer"):
            self.gateway.set_method_authorization(
                api_id,
                resource_id,
                authorization_type=AUTHORIZATION_TYPE,
                authorizer_id=authorizer_id,
            )

        with provisioning_step(self.logger, "redeploy"):
            self.gateway.create_deployment(api_id, stage_name, description="Added Cognito authentication")
        log_event(self.logger, "authorizer_attached", api_id=api_id, authorizer_id=authorizer_id)

        return AuthorizerResult(
            api_id=api_id,
            resource_id=resource_id,
            stage_name=stage_name,
            region=self.region,
            user_pool_id=pool["Id"],
            user_pool_arn=pool["Arn"],
            client_id=client_id,
            authorizer_id=authorizer_id,
            identity_header=config.identity_header,
            first_user_email=config.first_user_email,
            temporary_password=temporary_password,
        )

    def detach(self, *, api_id: str, stage_name: str = "prod", path_part: str = "instances") -> None:
        resource_id = self._resource_id(api_id, path_part)
        with provisioning_step(self.logger, "detach_authorizer"):
            self.gateway.set_method_authorization(api_id, resource_id, authorization_type="NONE")
        with provisioning_step(self.logger, "redeploy"):
            self.gateway.create_deployment(api_id, stage_name, description="Removed authentication")
        log_event(self.logger, "authorizer_detached", api_id=api_id)

from __future__ import annotations

import pytest

from ec2_dashboard.app.models.config import AuthorizerConfig
from ec2_dashboard.provisioning.authorizer import AuthorizerProvisioner, generate_temporary_password
from ec2_dashboard.provisioning.ledger import ResourceLedger
from ec2_dashboard.provisioning.naming import resource_names
from ec2_dashboard.util.errors import ProvisioningError
from fakes import CallLog, FakeCognito, FakeGateway

NAMES = resource_names("team-a")


def _setup():
    log = CallLog()
    gateway = FakeGateway(log)
    cognito = FakeCognito(log)
    api_id = gateway.add_rest_api(NAMES.api)
    resource_id = gateway.create_resource(api_id, gateway.root_resource_id(api_id), "instances")
    gateway.put_lambda_proxy_method(api_id, resource_id, "arn:uri")
    provisioner = AuthorizerProvisioner(region="eu-west-1", gateway=gateway, cognito=cognito)
    return provisioner, gateway, cognito, api_id, resource_id


def test_attach_protects_method_and_redeploys() -> None:
    provisioner, gateway, cognito, api_id, resource_id = _setup()
    ledger = ResourceLedger()

    result = provisioner.attach(
        api_id=api_id,
        names=NAMES,
        config=AuthorizerConfig(first_user_email="admin@example.com"),
        ledger=ledger,
    )

    method = gateway.get_method(api_id, resource_id)
    assert method["authorizationType"] == "COGNITO_USER_POOLS"
    assert method["authorizerId"] == result.authorizer_id
    authorizer = gateway.apis[api_id]["authorizers"][result.authorizer_id]
    assert authorizer["name"] == "CognitoAuthorizer"
    assert authorizer["identitySource"] == "method.request.header.Authorization"
    assert authorizer["providerARNs"] == [result.user_pool_arn]
    assert gateway.apis[api_id]["deployments"] == [("prod", "Added Cognito authentication")]
    assert cognito.pools[result.user_pool_id]["Name"] == NAMES.user_pool
    assert cognito.users[result.user_pool_id]["admin@example.com"] == result.temporary_password
    assert result.resource_id == resource_id
    assert ledger.identifiers() == [("user_pool", result.user_pool_id)]


def test_attach_twice_reuses_pool_client_and_authorizer() -> None:
    provisioner, gateway, cognito, api_id, _ = _setup()
    config = AuthorizerConfig(first_user_email="admin@example.com", user_pool_name="shared-users")

    first = provisioner.attach(api_id=api_id, names=NAMES, config=config)
    second = provisioner.attach(api_id=api_id, names=NAMES, config=config)

    assert len(cognito.pools) == 1
    assert second.user_pool_id == first.user_pool_id
    assert second.client_id == first.client_id
    assert second.authorizer_id == first.authorizer_id
    assert len(gateway.apis[api_id]["authorizers"]) == 1
    assert first.temporary_password
    assert second.temporary_password is None


def test_detach_opens_method_again() -> None:
    provisioner, gateway, _, api_id, resource_id = _setup()
    provisioner.attach(api_id=api_id, names=NAMES, config=AuthorizerConfig(first_user_email="admin@example.com"))

    provisioner.detach(api_id=api_id)

    assert gateway.get_method(api_id, resource_id)["authorizationType"] == "NONE"
    assert gateway.apis[api_id]["deployments"][-1] == ("prod", "Removed authentication")


def test_missing_resource_is_provisioning_error() -> None:
    provisioner, _, _, api_id, _ = _setup()

    with pytest.raises(ProvisioningError) as excinfo:
        provisioner.attach(
            api_id=api_id,
            names=NAMES,
            config=AuthorizerConfig(first_user_email="admin@example.com"),
            path_part="servers",
        )

    assert excinfo.value.step == "find_resource"


def test_temporary_password_meets_pool_policy() -> None:
    for _ in range(20):
        password = generate_temporary_password()
        assert len(password) >= 8
        assert any(char.isupper() for char in password)
        assert any(char.islower() for char in password)
        assert any(char.isdigit() for char in password)


def test_first_user_email_is_validated() -> None:
    with pytest.raises(ValueError):
        AuthorizerConfig(first_user_email="not-an-email")

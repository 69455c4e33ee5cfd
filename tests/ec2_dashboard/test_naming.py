import pytest

from ec2_dashboard.provisioning.naming import (
    endpoint_url,
    execute_api_source_arn,
    integration_uri,
    resource_names,
)


def test_names_are_derived_from_scope() -> None:
    names = resource_names("acme")

    assert names.function == "EC2Dashboard-acme"
    assert names.role == "EC2Dashboard-acme-Role"
    assert names.api == "EC2Dashboard-acme-API"
    assert names == resource_names("acme")
    assert resource_names("other").function != names.function


def test_empty_scope_is_rejected() -> None:
    with pytest.raises(ValueError):
        resource_names("")


def test_endpoint_and_arns() -> None:
    assert endpoint_url("abc123", "eu-west-1") == "https://abc123.execute-api.eu-west-1.amazonaws.com/prod/instances"
    assert execute_api_source_arn("eu-west-1", "123456789012", "abc123") == (
        "arn:aws:execute-api:eu-west-1:123456789012:abc123/*/*"
    )
    function_arn = "arn:aws:lambda:eu-west-1:123456789012:function:EC2Dashboard-acme"
    assert integration_uri("eu-west-1", function_arn) == (
        f"arn:aws:apigateway:eu-west-1:lambda:path/2015-03-31/functions/{function_arn}/invocations"
    )

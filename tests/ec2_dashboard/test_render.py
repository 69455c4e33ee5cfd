from __future__ import annotations

from ec2_dashboard.app.models.config import DashboardConfig
from ec2_dashboard.provisioning.authorizer import AuthorizerResult
from ec2_dashboard.provisioning.naming import resource_names
from ec2_dashboard.provisioning.reconciler import DeploymentResult
from ec2_dashboard.render.dashboard import (
    render_authorizer_summary,
    render_config_script,
    render_dashboard,
    render_deployment_summary,
    write_deployment_files,
)

ENDPOINT = "https://abc123.execute-api.eu-west-1.amazonaws.com/prod/instances"
POLICIES = ["arn:aws:iam::aws:policy/AmazonEC2ReadOnlyAccess"]


def _authorizer(password: str | None = "Temp0rary") -> AuthorizerResult:
    return AuthorizerResult(
        api_id="abc123",
        resource_id="res1",
        stage_name="prod",
        region="eu-west-1",
        user_pool_id="eu-west-1_pool1",
        user_pool_arn="arn:aws:cognito-idp:eu-west-1:123456789012:userpool/eu-west-1_pool1",
        client_id="client-1",
        authorizer_id="auth1",
        identity_header="Authorization",
        first_user_email="admin@example.com",
        temporary_password=password,
    )


def _result(authorizer: AuthorizerResult | None = None) -> DeploymentResult:
    names = resource_names("team-a")
    return DeploymentResult(
        scope="team-a",
        region="eu-west-1",
        account_id="123456789012",
        names=names,
        role_arn=f"arn:aws:iam::123456789012:role/{names.role}",
        function_arn=f"arn:aws:lambda:eu-west-1:123456789012:function:{names.function}",
        api_id="abc123",
        resource_id="res1",
        stage_name="prod",
        endpoint=ENDPOINT,
        created=[("role", names.role)],
        authorizer=authorizer,
    )


def test_dashboard_reads_config_script_by_default() -> None:
    html = render_dashboard(scope="team-a", region="eu-west-1", endpoint=ENDPOINT)

    assert '<script src="dashboard-config-team-a.js"></script>' in html
    assert ENDPOINT not in html
    assert 'id="loginScreen"' not in html
    assert "amazon-cognito-identity" not in html


def test_inline_config_embeds_endpoint() -> None:
    html = render_dashboard(scope="team-a", region="eu-west-1", endpoint=ENDPOINT, inline_config=True)

    assert "window.DASHBOARD_CONFIG = {" in html
    assert ENDPOINT in html
    assert "dashboard-config-team-a.js" not in html


def test_config_script_carries_endpoint_and_cognito() -> None:
    script = render_config_script(scope="team-a", region="eu-west-1", endpoint=ENDPOINT, authorizer=_authorizer())

    assert script.startswith("// EC2 Dashboard runtime configuration for team-a.")
    assert f'"apiEndpoint": "{ENDPOINT}"' in script
    assert '"userPoolId": "eu-west-1_pool1"' in script
    assert '"identityHeader": "Authorization"' in script


def test_open_api_config_has_no_cognito() -> None:
    script = render_config_script(scope="team-a", region="eu-west-1", endpoint=ENDPOINT)

    assert '"cognito": null' in script


def test_auth_dashboard_shows_login() -> None:
    html = render_dashboard(scope="team-a", region="eu-west-1", endpoint=ENDPOINT, authorizer=_authorizer())

    assert 'id="loginScreen"' in html
    assert "amazon-cognito-identity" in html
    assert 'id="dashboardScreen" class="hidden"' in html


def test_deployment_summary(freezer) -> None:
    summary = render_deployment_summary(_result(), policy_arns=POLICIES)

    assert "Deployment Date: 2020-01-01T00:00:00+00:00" in summary
    assert f"curl {ENDPOINT}" in summary
    assert "aws iam delete-role --role-name EC2Dashboard-team-a-Role" in summary
    assert (
        "aws iam detach-role-policy --role-name EC2Dashboard-team-a-Role "
        "--policy-arn arn:aws:iam::aws:policy/AmazonEC2ReadOnlyAccess"
    ) in summary
    assert "role: EC2Dashboard-team-a-Role" in summary
    assert "delete-user-pool" not in summary


def test_authorizer_summary_mentions_password_only_when_set() -> None:
    assert "Temporary Password: Temp0rary" in render_authorizer_summary(_authorizer())
    assert "Temporary Password" not in render_authorizer_summary(_authorizer(password=None))


def test_write_deployment_files(tmp_path) -> None:
    written = write_deployment_files(
        _result(_authorizer()),
        DashboardConfig(output_dir=str(tmp_path / "dist")),
        policy_arns=POLICIES,
    )

    assert [path.name for path in written] == [
        "ec2-dashboard-team-a.html",
        "dashboard-config-team-a.js",
        "cognito-config-team-a.txt",
        "deployment-info-team-a.txt",
    ]
    assert all(path.exists() for path in written)
    assert "delete-user-pool --user-pool-id eu-west-1_pool1" in written[-1].read_text(encoding="utf-8")

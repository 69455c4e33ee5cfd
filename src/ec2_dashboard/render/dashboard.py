from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import jinja2

from ec2_dashboard.app.models.config import DashboardConfig
from ec2_dashboard.provisioning.authorizer import AuthorizerResult
from ec2_dashboard.provisioning.reconciler import DeploymentResult

TEMPLATE_DIR = Path(__file__).parent / "templates"


def _environment() -> jinja2.Environment:
    return jinja2.Environment(
        loader=jinja2.FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=jinja2.select_autoescape(["html", "xml"]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def dashboard_filename(scope: str) -> str:
    return f"ec2-dashboard-{scope}.html"


def config_script_filename(scope: str) -> str:
    return f"dashboard-config-{scope}.js"


def runtime_config(
    *,
    scope: str,
    region: str,
    endpoint: str,
    authorizer: Optional[AuthorizerResult] = None,
) -> Dict[str, Any]:
    """Values the page reads at load time instead of having them compiled in."""
    config: Dict[str, Any] = {
        "scope": scope,
        "region": region,
        "apiEndpoint": endpoint,
        "cognito": None,
    }
    if authorizer:
        config["cognito"] = {
            "userPoolId": authorizer.user_pool_id,
            "clientId": authorizer.client_id,
            "region": authorizer.region,
            "identityHeader": authorizer.identity_header,
        }
    return config


def render_dashboard(
    *,
    scope: str,
    region: str,
    endpoint: str,
    authorizer: Optional[AuthorizerResult] = None,
    inline_config: bool = False,
) -> str:
    template = _environment().get_template("dashboard.html")
    return template.render(
        scope=scope,
        region=region,
        auth_enabled=authorizer is not None,
        inline_config=inline_config,
        runtime_config=runtime_config(scope=scope, region=region, endpoint=endpoint, authorizer=authorizer),
        config_script=config_script_filename(scope),
    )


def render_config_script(
    *,
    scope: str,
    region: str,
    endpoint: str,
    authorizer: Optional[AuthorizerResult] = None,
) -> str:
    template = _environment().get_template("dashboard-config.js")
    return template.render(
        scope=scope,
        runtime_config=runtime_config(scope=scope, region=region, endpoint=endpoint, authorizer=authorizer),
    )


def render_deployment_summary(result: DeploymentResult, *, policy_arns: Sequence[str]) -> str:
    template = _environment().get_template("deployment-info.txt")
    return template.render(
        result=result,
        policy_arns=list(policy_arns),
        dashboard_file=dashboard_filename(result.scope),
    )


def render_authorizer_summary(auth: AuthorizerResult) -> str:
    return _environment().get_template("cognito-config.txt").render(auth=auth)


def write_dashboard_files(
    output_dir: str | Path,
    *,
    scope: str,
    region: str,
    endpoint: str,
    authorizer: Optional[AuthorizerResult] = None,
    inline_config: bool = False,
) -> List[Path]:
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []

    html_path = directory / dashboard_filename(scope)
    html_path.write_text(
        render_dashboard(
            scope=scope,
            region=region,
            endpoint=endpoint,
            authorizer=authorizer,
            inline_config=inline_config,
        ),
        encoding="utf-8",
    )
    written.append(html_path)

    if not inline_config:
        script_path = directory / config_script_filename(scope)
        script_path.write_text(
            render_config_script(scope=scope, region=region, endpoint=endpoint, authorizer=authorizer),
            encoding="utf-8",
        )
        written.append(script_path)

    if authorizer:
        auth_path = directory / f"cognito-config-{scope}.txt"
        auth_path.write_text(render_authorizer_summary(authorizer), encoding="utf-8")
        written.append(auth_path)
    return written


def write_deployment_files(
    result: DeploymentResult,
    dashboard: DashboardConfig,
    *,
    policy_arns: Sequence[str],
) -> List[Path]:
    written = write_dashboard_files(
        dashboard.output_dir,
        scope=result.scope,
        region=result.region,
        endpoint=result.endpoint,
        authorizer=result.authorizer,
        inline_config=dashboard.inline_config,
    )
    summary_path = Path(dashboard.output_dir) / f"deployment-info-{result.scope}.txt"
    summary_path.write_text(render_deployment_summary(result, policy_arns=policy_arns), encoding="utf-8")
    written.append(summary_path)
    return written

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Callable, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ec2_dashboard.adapters.identity.iam import IamAdapter
from ec2_dashboard.app.config.loader import load_deployment_config, resolve_region
from ec2_dashboard.app.models.config import AuthorizerConfig
from ec2_dashboard.inventory.filtering import filter_by_tag
from ec2_dashboard.inventory.models import snapshot_to_payload
from ec2_dashboard.inventory.provider import InventoryProvider
from ec2_dashboard.provisioning.authorizer import AuthorizerProvisioner
from ec2_dashboard.provisioning.naming import endpoint_url, resource_names
from ec2_dashboard.provisioning.reconciler import Reconciler, scope_from_account_alias
from ec2_dashboard.render.dashboard import write_dashboard_files, write_deployment_files
from ec2_dashboard.util.errors import NonRetryableError, RetryableError

InputFn = Callable[[str], str]


def confirm(assume_yes: bool, input_fn: InputFn = input) -> bool:
    if assume_yes:
        return True
    reply = input_fn("Continue? (y/n): ").strip().lower()
    return reply.startswith("y")


def _auth_overrides(args: argparse.Namespace, existing: Optional[AuthorizerConfig]) -> Optional[Dict[str, Any]]:
    if not args.auth_email and not existing:
        return None
    data: Dict[str, Any] = existing.model_dump() if existing else {}
    if args.auth_email:
        data["first_user_email"] = args.auth_email
    if args.user_pool_name:
        data["user_pool_name"] = args.user_pool_name
    return data


def cmd_deploy(args: argparse.Namespace, input_fn: InputFn = input) -> int:
    config = load_deployment_config(args.config, overrides={"scope": args.scope, "region": args.region})
    authorizer = _auth_overrides(args, config.authorizer)
    if authorizer is not None:
        config = config.model_copy(update={"authorizer": AuthorizerConfig.model_validate(authorizer)})
    if args.output_dir:
        dashboard = config.dashboard.model_copy(update={"output_dir": args.output_dir})
        config = config.model_copy(update={"dashboard": dashboard})
    region = resolve_region(config.region)
    reconciler = Reconciler(region=region)
    scope = reconciler.resolve_scope(config)
    account_id = reconciler.iam.caller_account_id()

    print("Deploying to:")
    print(f"   Account ID: {account_id}")
    print(f"   Scope: {scope}")
    print(f"   Region: {region}")
    if config.authorizer:
        print(f"   First user: {config.authorizer.first_user_email}")
    if not confirm(args.yes, input_fn):
        print("Deployment cancelled")
        return 1

    result = reconciler.reconcile(config.model_copy(update={"scope": scope}))
    written = write_deployment_files(result, config.dashboard, policy_arns=config.managed_policy_arns)

    print("")
    print("Deployment complete")
    print(f"API Endpoint: {result.endpoint}")
    print("Files created:")
    for path in written:
        print(f"   - {path}")
    print(f"Test API: curl {result.endpoint}")
    return 0


def cmd_add_auth(args: argparse.Namespace, input_fn: InputFn = input) -> int:
    region = resolve_region(args.region)
    provisioner = AuthorizerProvisioner(region=region)
    scope = args.scope or scope_from_account_alias(IamAdapter(region))
    auth_config = AuthorizerConfig(first_user_email=args.email, user_pool_name=args.user_pool_name)

    print("Configuration:")
    print(f"   API ID: {args.api_id}")
    print(f"   User Pool: {auth_config.user_pool_name or resource_names(scope).user_pool}")
    print(f"   Region: {region}")
    print(f"   First User: {auth_config.first_user_email}")
    if not confirm(args.yes, input_fn):
        return 1

    auth = provisioner.attach(
        api_id=args.api_id,
        names=resource_names(scope),
        config=auth_config,
        stage_name=args.stage,
        path_part=args.path,
    )
    written = write_dashboard_files(
        args.output_dir or ".",
        scope=scope,
        region=region,
        endpoint=endpoint_url(args.api_id, region, args.stage, args.path),
        authorizer=auth,
        inline_config=args.inline_config,
    )
    print("Cognito authentication enabled")
    for path in written:
        print(f"   - {path}")
    return 0


def cmd_remove_auth(args: argparse.Namespace, input_fn: InputFn = input) -> int:
    region = resolve_region(args.region)
    AuthorizerProvisioner(region=region).detach(api_id=args.api_id, stage_name=args.stage, path_part=args.path)
    print(f"Authentication removed from {endpoint_url(args.api_id, region, args.stage, args.path)}")
    return 0


def cmd_destroy(args: argparse.Namespace, input_fn: InputFn = input) -> int:
    region = resolve_region(args.region)
    reconciler = Reconciler(region=region)
    scope = args.scope or scope_from_account_alias(reconciler.iam)
    print(f"Deleting EC2 Dashboard resources for scope {scope} in {region}")
    if not confirm(args.yes, input_fn):
        return 1
    removed = reconciler.teardown(
        scope,
        user_pool_name=args.user_pool_name,
        delete_user_pool=args.delete_user_pool,
    )
    if not removed:
        print("Nothing to delete")
    for kind, identifier in removed:
        print(f"   deleted {kind}: {identifier}")
    return 0


def cmd_list(args: argparse.Namespace, input_fn: InputFn = input) -> int:
    snapshot = InventoryProvider(region=resolve_region(args.region)).list_instances()
    snapshot = filter_by_tag(snapshot, args.tag_key, args.tag_value)
    if args.json:
        print(json.dumps(snapshot_to_payload(snapshot), indent=2))
        return 0
    print(f"{'NAME':<30} {'INSTANCE ID':<20} {'PRIVATE IP':<16} STATE")
    for record in snapshot:
        print(f"{record.name:<30} {record.instance_id:<20} {record.private_ip:<16} {record.state.value}")
    print(f"# Total: {len(snapshot)}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ec2-dashboard", description="Deploy a read-only EC2 inventory dashboard")
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Create or replace the role, function and API")
    deploy.add_argument("--config", help="Path to deployment config YAML")
    deploy.add_argument("--scope", help="Scope token for resource names (defaults to the account alias)")
    deploy.add_argument("--region", help="AWS region")
    deploy.add_argument("--auth-email", help="Protect the API with Cognito and create this first user")
    deploy.add_argument("--user-pool-name", help="Cognito user pool name")
    deploy.add_argument("--output-dir", help="Directory for the dashboard and summary files")
    deploy.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    deploy.set_defaults(handler=cmd_deploy)

    add_auth = subparsers.add_parser("add-auth", help="Protect an existing API with Cognito")
    add_auth.add_argument("--api-id", required=True, help="API Gateway REST API id")
    add_auth.add_argument("--email", required=True, help="First user email")
    add_auth.add_argument("--user-pool-name", help="Cognito user pool name")
    add_auth.add_argument("--scope", help="Scope token for resource names (defaults to the account alias)")
    add_auth.add_argument("--region", help="AWS region")
    add_auth.add_argument("--stage", default="prod")
    add_auth.add_argument("--path", default="instances")
    add_auth.add_argument("--output-dir", help="Directory for the dashboard and config files")
    add_auth.add_argument("--inline-config", action="store_true", help="Embed runtime config in the HTML")
    add_auth.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    add_auth.set_defaults(handler=cmd_add_auth)

    remove_auth = subparsers.add_parser("remove-auth", help="Make the API open again")
    remove_auth.add_argument("--api-id", required=True)
    remove_auth.add_argument("--region")
    remove_auth.add_argument("--stage", default="prod")
    remove_auth.add_argument("--path", default="instances")
    remove_auth.set_defaults(handler=cmd_remove_auth)

    destroy = subparsers.add_parser("destroy", help="Delete the resources of a scope")
    destroy.add_argument("--scope", help="Scope token (defaults to the account alias)")
    destroy.add_argument("--region")
    destroy.add_argument("--delete-user-pool", action="store_true")
    destroy.add_argument("--user-pool-name")
    destroy.add_argument("--yes", action="store_true", help="Do not ask for confirmation")
    destroy.set_defaults(handler=cmd_destroy)

    listing = subparsers.add_parser("list", help="List instances with local credentials")
    listing.add_argument("--region")
    listing.add_argument("--tag-key")
    listing.add_argument("--tag-value")
    listing.add_argument("--json", action="store_true")
    listing.set_defaults(handler=cmd_list)
    return parser


def main(argv: Optional[List[str]] = None, input_fn: InputFn = input) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args, input_fn)
    except (RetryableError, NonRetryableError) as exc:
        step = f" at step {exc.step}" if exc.step else ""
        print(f"Failed{step}: {exc}", file=sys.stderr)
        return 1
    except (BotoCoreError, ClientError) as exc:
        print(f"AWS error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2


def run() -> None:
    raise SystemExit(main())


if __name__ == "__main__":
    run()

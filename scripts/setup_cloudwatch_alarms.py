from __future__ import annotations

import argparse
from typing import Optional

import boto3

from ec2_dashboard.provisioning.naming import resource_names
from ec2_dashboard.util.metrics import DEFAULT_NAMESPACE


def _alarm_name(prefix: str, name: str, scope: str) -> str:
    return f"{prefix}-{scope}-{name}"


def _alarm_actions(topic_arn: Optional[str]) -> list[str]:
    if not topic_arn:
        return []
    return [topic_arn]


def build_alarms(args: argparse.Namespace) -> list[dict]:
    function_name = resource_names(args.scope).function
    alarm_actions = _alarm_actions(args.sns_topic_arn)
    return [
        {
            "AlarmName": _alarm_name(args.alarm_prefix, "listing-failures", args.scope),
            "AlarmDescription": (
                "Triggers when instance listing keeps failing. "
                "Metric is written as 1 for failure and 0 for success."
            ),
            "Namespace": args.namespace,
            "MetricName": "ListingFailed",
            "Dimensions": [],
            "Statistic": "Maximum",
            "Period": args.listing_failure_period,
            "EvaluationPeriods": args.listing_failure_threshold,
            "DatapointsToAlarm": args.listing_failure_threshold,
            "Threshold": 1,
            "ComparisonOperator": "GreaterThanOrEqualToThreshold",
            "TreatMissingData": "notBreaching",
            "AlarmActions": alarm_actions,
            "OKActions": alarm_actions,
        },
        {
            "AlarmName": _alarm_name(args.alarm_prefix, "function-errors", args.scope),
            "AlarmDescription": f"Triggers on invocation errors of {function_name}.",
            "Namespace": "AWS/Lambda",
            "MetricName": "Errors",
            "Dimensions": [{"Name": "FunctionName", "Value": function_name}],
            "Statistic": "Sum",
            "Period": args.function_error_period,
            "EvaluationPeriods": 1,
            "DatapointsToAlarm": 1,
            "Threshold": args.function_error_threshold,
            "ComparisonOperator": "GreaterThanOrEqualToThreshold",
            "TreatMissingData": "notBreaching",
            "AlarmActions": alarm_actions,
            "OKActions": alarm_actions,
        },
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Create CloudWatch alarms for the EC2 Dashboard")
    parser.add_argument("--scope", required=True, help="Scope token the dashboard was deployed with")
    parser.add_argument("--region", help="AWS region")
    parser.add_argument("--alarm-prefix", default="ec2-dashboard", help="Alarm name prefix")
    parser.add_argument(
        "--namespace",
        default=DEFAULT_NAMESPACE,
        help="CloudWatch namespace for custom metrics",
    )
    parser.add_argument("--sns-topic-arn", help="SNS topic ARN for alarm actions")
    parser.add_argument(
        "--listing-failure-threshold",
        type=int,
        default=3,
        help="Datapoints/evaluation periods for consecutive listing failures",
    )
    parser.add_argument(
        "--listing-failure-period",
        type=int,
        default=300,
        help="Period in seconds for the listing failure alarm",
    )
    parser.add_argument(
        "--function-error-threshold",
        type=int,
        default=5,
        help="Function error count threshold",
    )
    parser.add_argument(
        "--function-error-period",
        type=int,
        default=300,
        help="Period in seconds for the function error alarm",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    cloudwatch = boto3.client("cloudwatch", region_name=args.region)
    for alarm in build_alarms(args):
        cloudwatch.put_metric_alarm(**alarm)


if __name__ == "__main__":
    main()

"""AWS platform adapters."""

from cronkeeper.integrations.aws.ecs import EcsTaskDefinitionStore
from cronkeeper.integrations.aws.logs import LOG_TYPES, CloudWatchLogReader, log_stream_name
from cronkeeper.integrations.aws.rules import CloudWatchRuleManager, rule_name, rule_name_from_arn
from cronkeeper.integrations.aws.session import (
    AwsCredentials,
    AwsSessionProvider,
    translate_aws_errors,
)

__all__ = [
    "LOG_TYPES",
    "AwsCredentials",
    "AwsSessionProvider",
    "CloudWatchLogReader",
    "CloudWatchRuleManager",
    "EcsTaskDefinitionStore",
    "log_stream_name",
    "rule_name",
    "rule_name_from_arn",
    "translate_aws_errors",
]

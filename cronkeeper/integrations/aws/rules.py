"""CloudWatch Events scheduled rules."""

from __future__ import annotations

import hashlib
import logging

from cronkeeper.cron.naming import DEFAULT_PREFIX, resource_name
from cronkeeper.errors import InvalidInputError
from cronkeeper.integrations.aws.session import AwsSessionProvider, client_error_code, translate_aws_errors

logger = logging.getLogger(__name__)

MAX_RULE_NAME_LENGTH = 64


def rule_name(cron_name: str, prefix: str = DEFAULT_PREFIX) -> str:
    """Return the rule name of a cron, hashed when the plain name is too long."""
    name = resource_name(cron_name, prefix)
    if len(name) <= MAX_RULE_NAME_LENGTH:
        return name
    digest = hashlib.sha256(cron_name.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}{cron_name[:42]}-{digest}"


def rule_name_from_arn(rule_arn: str) -> str:
    """Extract the rule name from ``arn:aws:events:<region>:<account>:rule/<name>``."""
    parts = rule_arn.split(":", 5)
    if len(parts) != 6 or parts[0] != "arn":
        raise InvalidInputError(f"could not parse rule name from ARN {rule_arn!r}")
    resource = parts[5].split("/")
    if len(resource) != 2 or resource[0] != "rule" or not resource[1]:
        raise InvalidInputError(f"could not parse rule name from ARN {rule_arn!r}")
    return resource[1]


class CloudWatchRuleManager:
    """Create and remove the scheduled rule that triggers a cron."""

    def __init__(self, sessions: AwsSessionProvider, *, cron_prefix: str = DEFAULT_PREFIX) -> None:
        self._sessions = sessions
        self.cron_prefix = cron_prefix

    async def create_rule(self, cron_name: str, topic_arn: str, schedule: str) -> str:
        """Put an enabled rule targeting the trigger topic and return its ARN."""
        name = rule_name(cron_name, self.cron_prefix)
        with translate_aws_errors(f"put rule {name}"):
            async with self._sessions.client("events") as client:
                response = await client.put_rule(Name=name, State="ENABLED", ScheduleExpression=schedule)
                await client.put_targets(Rule=name, Targets=[{"Id": name, "Arn": topic_arn}])
        rule_arn = str(response["RuleArn"])
        logger.info("schedule_rule_created cron=%s rule_arn=%s", cron_name, rule_arn)
        return rule_arn

    async def delete_rule(self, rule_arn: str) -> None:
        """Remove targets then the rule itself. A missing rule counts as deleted."""
        name = rule_name_from_arn(rule_arn)
        async with self._sessions.client("events") as client:
            try:
                response = await client.list_targets_by_rule(Rule=name)
            except Exception as exc:
                if client_error_code(exc) == "ResourceNotFoundException":
                    return
                with translate_aws_errors(f"list targets {name}"):
                    raise
            with translate_aws_errors(f"delete rule {name}"):
                ids = [target["Id"] for target in response.get("Targets", [])]
                if ids:
                    await client.remove_targets(Rule=name, Ids=ids)
                await client.delete_rule(Name=name)
        logger.info("schedule_rule_deleted rule=%s", name)

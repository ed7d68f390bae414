"""CloudWatch Logs access for execution output."""

from __future__ import annotations

from cronkeeper.cron.naming import DEFAULT_PREFIX, resource_name
from cronkeeper.errors import NotFoundError
from cronkeeper.integrations.aws.session import AwsSessionProvider, client_error_code, translate_aws_errors

LOG_TYPES = ("stdout", "stderr")


def log_stream_name(cron_name: str, task_id: str, log_type: str, prefix: str = DEFAULT_PREFIX) -> str:
    return f"{log_type}/{resource_name(cron_name, prefix)}/{task_id}"


class CloudWatchLogReader:
    """Tail the log stream of one execution."""

    def __init__(self, sessions: AwsSessionProvider, *, log_group: str, cron_prefix: str = DEFAULT_PREFIX) -> None:
        self._sessions = sessions
        self.log_group = log_group
        self.cron_prefix = cron_prefix

    async def tail(self, cron_name: str, task_id: str, log_type: str, limit: int = 100) -> list[str]:
        stream = log_stream_name(cron_name, task_id, log_type, self.cron_prefix)
        async with self._sessions.client("logs") as client:
            try:
                response = await client.get_log_events(
                    logGroupName=self.log_group,
                    logStreamName=stream,
                    limit=limit,
                    startFromHead=False,
                )
            except Exception as exc:
                if client_error_code(exc) == "ResourceNotFoundException":
                    raise NotFoundError("log stream", stream) from exc
                with translate_aws_errors(f"get log events {stream}"):
                    raise
        return [str(event.get("message", "")) for event in response.get("events", [])]

"""Cronitor heartbeat monitors.

Two APIs are involved: the monitor API (create, update and delete monitors,
basic auth with the API key) and the ping API (run, complete and fail
pings, authenticated with the auth key). Every request goes through the
circuit breaker under its own action name.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from cronkeeper.cron.models import NotificationDescription
from cronkeeper.errors import AlreadyExistsError, PermanentBackendError, TransientBackendError
from cronkeeper.integrations.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

MONITOR_NOTE = "Created by cronkeeper"


class HeartbeatMonitor(Protocol):
    """Heartbeat reporting and monitor management."""

    async def report_run(self, monitor_id: str) -> None: ...

    async def report_success(self, monitor_id: str) -> None: ...

    async def report_fail(self, monitor_id: str, message: str) -> None: ...

    async def create_or_update(self, name: str, notifications: NotificationDescription) -> str: ...

    async def delete(self, monitor_id: str) -> None: ...


def build_monitor_payload(name: str, notifications: NotificationDescription) -> dict[str, Any]:
    """Build the heartbeat monitor definition for a cron."""
    targets: dict[str, list[str]] = {}
    if notifications.pagerduty_key:
        targets["pagerduty"] = [notifications.pagerduty_key]
    if notifications.slack_channel:
        targets["slack"] = [notifications.slack_channel]
    rules: list[dict[str, Any]] = []
    if notifications.no_run_threshold:
        rules.append(
            {
                "rule_type": "run_ping_not_received",
                "value": notifications.no_run_threshold / 60,
                "time_unit": "minutes",
            }
        )
    if notifications.ran_longer_than_threshold:
        rules.append(
            {
                "rule_type": "ran_longer_than",
                "value": notifications.ran_longer_than_threshold / 60,
                "time_unit": "minutes",
            }
        )
    return {
        "code": name,
        "name": name,
        "type": "heartbeat",
        "note": MONITOR_NOTE,
        "notifications": targets,
        "rules": rules,
    }


class CronitorClient:
    """httpx-based client for Cronitor monitors and pings."""

    def __init__(
        self,
        *,
        api_key: str,
        auth_key: str,
        breaker: CircuitBreaker,
        api_url: str = "https://cronitor.io/v3",
        ping_url: str = "https://cronitor.link",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._auth_key = auth_key
        self._breaker = breaker
        self._api_url = api_url.rstrip("/")
        self._ping_url = ping_url.rstrip("/")
        self._transport = transport

    async def report_run(self, monitor_id: str) -> None:
        await self._ping("cronitor_report_run", monitor_id, "run")

    async def report_success(self, monitor_id: str) -> None:
        await self._ping("cronitor_report_success", monitor_id, "complete")

    async def report_fail(self, monitor_id: str, message: str) -> None:
        await self._ping("cronitor_report_fail", monitor_id, "fail", msg=message)

    async def create_or_update(self, name: str, notifications: NotificationDescription) -> str:
        payload = build_monitor_payload(name, notifications)
        existing = await self._request("cronitor_get_monitor", "GET", f"{self._api_url}/monitors/{name}", allow_missing=True)
        if existing is None:
            try:
                await self._request("cronitor_create_monitor", "POST", f"{self._api_url}/monitors", json=payload)
                logger.info("cronitor_monitor_created name=%s", name)
                return name
            except AlreadyExistsError:
                logger.info("cronitor_monitor_create_conflict name=%s", name)
        await self._request("cronitor_update_monitor", "PUT", f"{self._api_url}/monitors/{name}", json=payload)
        logger.info("cronitor_monitor_updated name=%s", name)
        return name

    async def delete(self, monitor_id: str) -> None:
        await self._request(
            "cronitor_delete_monitor",
            "DELETE",
            f"{self._api_url}/monitors/{monitor_id}",
            allow_missing=True,
        )

    async def _ping(self, action: str, monitor_id: str, endpoint: str, **params: str) -> None:
        query = dict(params)
        if self._auth_key:
            query["auth_key"] = self._auth_key
        await self._request(action, "GET", f"{self._ping_url}/{monitor_id}/{endpoint}", params=query, auth=False)

    async def _request(
        self,
        action: str,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        allow_missing: bool = False,
        auth: bool = True,
    ) -> httpx.Response | None:
        async def _send() -> httpx.Response:
            async with httpx.AsyncClient(transport=self._transport) as client:
                try:
                    response = await client.request(
                        method,
                        url,
                        json=json,
                        params=params,
                        auth=(self._api_key, "") if auth else None,
                    )
                except httpx.TransportError as exc:
                    raise TransientBackendError(f"{action} failed: {exc.__class__.__name__}") from exc
            # Upstream outages count against the breaker; client errors do not.
            if response.status_code >= 500 or response.status_code == 429:
                raise TransientBackendError(f"{action} failed with status {response.status_code}")
            return response

        response = await self._breaker.call(action, _send)
        if allow_missing and response.status_code == 404:
            return None
        if response.status_code == 409:
            raise AlreadyExistsError(f"{action} conflicted with an existing resource")
        if response.status_code >= 400:
            raise PermanentBackendError(f"{action} failed with status {response.status_code}")
        return response

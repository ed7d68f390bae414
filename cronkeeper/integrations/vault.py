"""Vault access: AppRole login, AWS credentials, secret references."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import Any
from urllib.parse import urlparse

import httpx

from cronkeeper.errors import PermanentBackendError, TransientBackendError
from cronkeeper.integrations.aws.session import AwsCredentials, AwsSessionProvider

logger = logging.getLogger(__name__)

SECRET_REFERENCE_KEY_PREFIX = "$ref"
SECRET_REFERENCE_SCHEME = "vault+secret"
MIN_REFRESH_MARGIN_SECONDS = 30.0


def refresh_delay(lease_seconds: float) -> float:
    """Seconds to wait before renewing a lease of ``lease_seconds``.

    Renewal happens ``max(30s, 10% of the lease)`` before expiry, and never
    sooner than one second from now.
    """
    margin = max(MIN_REFRESH_MARGIN_SECONDS, lease_seconds * 0.1)
    return max(1.0, lease_seconds - margin)


class VaultClient:
    """Minimal Vault HTTP client authenticating with an AppRole role id."""

    def __init__(
        self,
        *,
        address: str,
        role_id: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.address = address.rstrip("/")
        self._role_id = role_id
        self._transport = transport
        self._timeout = timeout
        self._token: str | None = None
        self._token_expires_at = 0.0

    async def _login(self) -> str:
        payload = await self._send("POST", "auth/approle/login", json={"role_id": self._role_id}, token=None)
        auth = payload.get("auth") or {}
        token = auth.get("client_token")
        if not token:
            raise PermanentBackendError("vault login returned no client token")
        lease = float(auth.get("lease_duration") or 0)
        self._token = str(token)
        self._token_expires_at = time.monotonic() + refresh_delay(lease) if lease else float("inf")
        return self._token

    async def _current_token(self) -> str:
        if self._token is None or time.monotonic() >= self._token_expires_at:
            return await self._login()
        return self._token

    async def read(self, path: str) -> dict[str, Any]:
        """Read a secret path and return the full response body."""
        return await self._send("GET", path, token=await self._current_token())

    async def read_optional(self, path: str) -> dict[str, Any] | None:
        return await self._send("GET", path, token=await self._current_token(), allow_missing=True)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        token: str | None,
        json: dict[str, Any] | None = None,
        allow_missing: bool = False,
    ) -> Any:
        headers = {"X-Vault-Token": token} if token else {}
        url = f"{self.address}/v1/{path.lstrip('/')}"
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            try:
                response = await client.request(method, url, json=json, headers=headers)
            except httpx.TransportError as exc:
                raise TransientBackendError(f"vault {method} {path} failed: {exc.__class__.__name__}") from exc
        if allow_missing and response.status_code == 404:
            return None
        if response.status_code >= 500:
            raise TransientBackendError(f"vault {method} {path} failed with status {response.status_code}")
        if response.status_code >= 400:
            raise PermanentBackendError(f"vault {method} {path} failed with status {response.status_code}")
        return response.json()


class VaultSecretProvider:
    """Resolve ``vault+secret://`` references and per-cron AppRole ids."""

    def __init__(self, client: VaultClient) -> None:
        self._client = client

    @property
    def address(self) -> str:
        return self._client.address

    async def values(self, reference: str) -> dict[str, str]:
        parsed = urlparse(reference)
        if parsed.scheme != SECRET_REFERENCE_SCHEME:
            raise PermanentBackendError(f"unsupported secret reference scheme: {parsed.scheme!r}")
        path = f"{parsed.netloc}{parsed.path}"
        payload = await self._client.read(path)
        data = payload.get("data") or {}
        return {str(key): str(value) for key, value in data.items()}

    async def role_id(self, cron_name: str) -> str:
        """Return the AppRole id provisioned for a cron, empty when there is none."""
        payload = await self._client.read_optional(f"auth/approle/role/{cron_name}/role-id")
        if payload is None:
            return ""
        return str((payload.get("data") or {}).get("role_id", ""))


class CredentialRefresher:
    """Keep the AWS session supplied with fresh STS credentials from Vault."""

    def __init__(self, client: VaultClient, *, aws_role: str, sessions: AwsSessionProvider) -> None:
        self._client = client
        self._aws_role = aws_role
        self._sessions = sessions

    async def refresh_once(self) -> float:
        """Fetch new credentials, install them, and return the lease in seconds."""
        payload = await self._client.read(f"aws/sts/{self._aws_role}")
        data = payload.get("data") or {}
        try:
            credentials = AwsCredentials(
                access_key=str(data["access_key"]),
                secret_key=str(data["secret_key"]),
                session_token=data.get("security_token"),
            )
        except KeyError as exc:
            raise PermanentBackendError(f"vault returned incomplete AWS credentials: missing {exc}") from exc
        self._sessions.update_credentials(credentials)
        lease = float(payload.get("lease_duration") or 3600)
        logger.info("aws_credentials_refreshed role=%s lease_seconds=%s", self._aws_role, lease)
        return lease

    async def run(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                delay = refresh_delay(await self.refresh_once())
            except (TransientBackendError, PermanentBackendError):
                logger.exception("aws_credentials_refresh_failed role=%s", self._aws_role)
                delay = MIN_REFRESH_MARGIN_SECONDS
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(stop.wait(), timeout=delay)

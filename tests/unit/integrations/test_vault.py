from __future__ import annotations

import httpx
import pytest

from cronkeeper.errors import PermanentBackendError
from cronkeeper.integrations.aws.session import AwsCredentials
from cronkeeper.integrations.vault import CredentialRefresher, VaultClient, VaultSecretProvider, refresh_delay


class _Vault:
    def __init__(self, routes: dict[tuple[str, str], tuple[int, dict]]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/v1/auth/approle/login":
            return httpx.Response(200, json={"auth": {"client_token": "tok-1", "lease_duration": 3600}})
        status, body = self.routes.get((request.method, request.url.path), (404, {}))
        return httpx.Response(status, json=body)


class _Sessions:
    def __init__(self) -> None:
        self.credentials: list[AwsCredentials] = []

    def update_credentials(self, credentials: AwsCredentials) -> None:
        self.credentials.append(credentials)


def _client(vault: _Vault) -> VaultClient:
    return VaultClient(address="https://vault.local/", role_id="role-1", transport=httpx.MockTransport(vault))


def test_refresh_delay() -> None:
    assert refresh_delay(3600) == 3240
    assert refresh_delay(100) == 70
    assert refresh_delay(20) == 1.0


@pytest.mark.asyncio
async def test_refresh_installs_sts_credentials() -> None:
    vault = _Vault(
        {
            ("GET", "/v1/aws/sts/cronkeeper"): (
                200,
                {"lease_duration": 900, "data": {"access_key": "AK", "secret_key": "SK", "security_token": "ST"}},
            )
        }
    )
    sessions = _Sessions()
    refresher = CredentialRefresher(_client(vault), aws_role="cronkeeper", sessions=sessions)  # type: ignore[arg-type]
    assert await refresher.refresh_once() == 900
    assert sessions.credentials == [AwsCredentials(access_key="AK", secret_key="SK", session_token="ST")]
    login, read = vault.requests
    assert login.method == "POST"
    assert read.headers["x-vault-token"] == "tok-1"


@pytest.mark.asyncio
async def test_incomplete_credentials_are_rejected() -> None:
    vault = _Vault({("GET", "/v1/aws/sts/cronkeeper"): (200, {"data": {"access_key": "AK"}})})
    refresher = CredentialRefresher(_client(vault), aws_role="cronkeeper", sessions=_Sessions())  # type: ignore[arg-type]
    with pytest.raises(PermanentBackendError, match="secret_key"):
        await refresher.refresh_once()


@pytest.mark.asyncio
async def test_token_is_reused_between_reads() -> None:
    vault = _Vault({("GET", "/v1/secret/data/app"): (200, {"data": {"A": "1"}})})
    client = _client(vault)
    await client.read("secret/data/app")
    await client.read("secret/data/app")
    assert [request.method for request in vault.requests] == ["POST", "GET", "GET"]


@pytest.mark.asyncio
async def test_secret_reference_resolves_values() -> None:
    vault = _Vault({("GET", "/v1/secret/data/app"): (200, {"data": {"DB_PASSWORD": "s3cret", "PORT": 5432}})})
    provider = VaultSecretProvider(_client(vault))
    assert await provider.values("vault+secret://secret/data/app") == {"DB_PASSWORD": "s3cret", "PORT": "5432"}
    assert provider.address == "https://vault.local"


@pytest.mark.asyncio
async def test_unsupported_reference_scheme_rejected() -> None:
    provider = VaultSecretProvider(_client(_Vault({})))
    with pytest.raises(PermanentBackendError, match="scheme"):
        await provider.values("https://secret/data/app")


@pytest.mark.asyncio
async def test_role_id_missing_role_is_empty() -> None:
    vault = _Vault({("GET", "/v1/auth/approle/role/with-role/role-id"): (200, {"data": {"role_id": "rid-9"}})})
    provider = VaultSecretProvider(_client(vault))
    assert await provider.role_id("with-role") == "rid-9"
    assert await provider.role_id("without-role") == ""

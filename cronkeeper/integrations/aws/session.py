"""AWS client sessions with swappable credentials."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from cronkeeper.errors import PermanentBackendError, TransientBackendError

logger = logging.getLogger(__name__)

_TRANSIENT_CODES = frozenset(
    {
        "InternalError",
        "InternalFailure",
        "RequestLimitExceeded",
        "RequestTimeout",
        "ServiceUnavailable",
        "Throttling",
        "ThrottlingException",
    }
)


@dataclass(frozen=True, slots=True)
class AwsCredentials:
    """Short-lived AWS credentials issued by the secrets backend."""

    access_key: str
    secret_key: str
    session_token: str | None = None


class AwsSessionProvider:
    """Hand out AWS clients bound to the current credentials.

    Credentials are replaced in place by the credential refresher; clients
    opened afterwards use the new ones.
    """

    def __init__(self, *, region: str, credentials: AwsCredentials | None = None) -> None:
        self.region = region
        self._session = self._build_session(credentials)

    def _build_session(self, credentials: AwsCredentials | None) -> aioboto3.Session:
        if credentials is None:
            return aioboto3.Session(region_name=self.region)
        return aioboto3.Session(
            aws_access_key_id=credentials.access_key,
            aws_secret_access_key=credentials.secret_key,
            aws_session_token=credentials.session_token,
            region_name=self.region,
        )

    def update_credentials(self, credentials: AwsCredentials) -> None:
        self._session = self._build_session(credentials)
        logger.info("aws_credentials_rotated region=%s", self.region)

    def client(self, service: str) -> Any:
        """Return an async context manager yielding a client for ``service``."""
        return self._session.client(service, region_name=self.region)


@contextmanager
def translate_aws_errors(operation: str) -> Iterator[None]:
    """Map botocore failures onto transient and permanent backend errors."""
    try:
        yield
    except ClientError as exc:
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in _TRANSIENT_CODES:
            raise TransientBackendError(f"{operation} failed: {code}") from exc
        raise PermanentBackendError(f"{operation} failed: {code or 'ClientError'}") from exc
    except (BotoCoreError, OSError) as exc:
        raise TransientBackendError(f"{operation} failed: {exc.__class__.__name__}") from exc


def client_error_code(exc: BaseException) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code", ""))
    return ""
